from .ddl_builder import (
    build_column_definition,
    render_constraint,
    build_create_table,
    build_alter_statement,
    build_alter_table,
    build_drop_table,
    build_preview_ddl,
    build_alter_preview_ddl,
)

__all__ = [
    'build_column_definition',
    'render_constraint',
    'build_create_table',
    'build_alter_statement',
    'build_alter_table',
    'build_drop_table',
    'build_preview_ddl',
    'build_alter_preview_ddl',
]
