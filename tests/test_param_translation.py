"""
Test cases for placeholder translation between builder output and driver paramstyles.
"""
import pytest

from sqlpeek.datastore.param_translation import count_placeholders, named_to_qmark, qmark_to_format


class TestQmarkToFormat:
    """'?' to '%s' for aiomysql"""

    def test_placeholders_replaced(self):
        assert qmark_to_format('INSERT INTO `t` (`a`, `b`) VALUES (?, ?)') == 'INSERT INTO `t` (`a`, `b`) VALUES (%s, %s)'

    def test_literals_untouched(self):
        sql = "SELECT '?' AS q, `we?rd` FROM t WHERE a = ? -- why?\n"
        assert qmark_to_format(sql) == "SELECT '?' AS q, `we?rd` FROM t WHERE a = %s -- why?\n"

    def test_percent_doubled(self):
        assert qmark_to_format("SELECT * FROM t WHERE name LIKE 'a%' AND b = ?") == (
            "SELECT * FROM t WHERE name LIKE 'a%%' AND b = %s"
        )

    def test_backslash_escaped_quote(self):
        sql = "SELECT 'it\\'s ?' WHERE a = ?"
        assert qmark_to_format(sql) == "SELECT 'it\\'s ?' WHERE a = %s"


class TestNamedToQmark:
    """'@pN' to '?' for pyodbc"""

    def test_in_order(self):
        sql, params = named_to_qmark('UPDATE [t] SET [a] = @p1 WHERE [id] = @p2', ['x', 7])

        assert sql == 'UPDATE [t] SET [a] = ? WHERE [id] = ?'
        assert params == ['x', 7]

    def test_reordered_and_repeated(self):
        sql, params = named_to_qmark('SELECT @p2, @p1, @p2', ['a', 'b'])

        assert sql == 'SELECT ?, ?, ?'
        assert params == ['b', 'a', 'b']

    def test_literals_and_variables_untouched(self):
        sql, params = named_to_qmark("SELECT N'@p1', [@p1], @@ROWCOUNT, @page WHERE id = @p1", [5])

        assert sql == "SELECT N'@p1', [@p1], @@ROWCOUNT, @page WHERE id = ?"
        assert params == [5]

    def test_missing_parameter(self):
        with pytest.raises(ValueError, match="@p3"):
            named_to_qmark('SELECT @p3', [1])


class TestCountPlaceholders:

    def test_styles(self):
        assert count_placeholders('SELECT $1, $2, \'$3\'', 'numeric') == 2
        assert count_placeholders("SELECT ?, '?' /* ? */", 'qmark') == 1
        assert count_placeholders('SELECT @p1, @p2', 'named') == 2

    def test_unknown_style(self):
        with pytest.raises(ValueError):
            count_placeholders('SELECT 1', 'pyformat')
