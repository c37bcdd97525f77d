from .sqlpeek_cli import cli


def main():
    cli(obj={})


__all__ = ['cli', 'main']
