"""Filter mapping to SQL translator."""

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from sqlglot import exp


def _function(name: str) -> Callable[[exp.Expression, exp.Expression], exp.Expression]:
    def build(column: exp.Expression, value: exp.Expression) -> exp.Expression:
        return exp.Anonymous(this=name, expressions=[column, value])
    return build


# Operators comparing a column with a single parameter
SCALAR_OPERATORS: Dict[str, Callable[[exp.Expression, exp.Expression], exp.Expression]] = {
    "eq": lambda column, value: exp.EQ(this=column, expression=value),
    "ne": lambda column, value: exp.NEQ(this=column, expression=value),
    "gt": lambda column, value: exp.GT(this=column, expression=value),
    "gte": lambda column, value: exp.GTE(this=column, expression=value),
    "lt": lambda column, value: exp.LT(this=column, expression=value),
    "lte": lambda column, value: exp.LTE(this=column, expression=value),
    "contains": _function("contains"),
    "startsWith": _function("starts_with"),
    "endsWith": _function("ends_with"),
}

LIST_OPERATORS = ("in", "nin")


class FilterTranslator:
    """Translates ``{column: {operator: operand}}`` filters into DuckDB SQL.

    Operands never reach the SQL text: every one becomes a positional ``?``
    parameter, returned in the order the placeholders appear.
    """

    def __init__(self, dialect: str = "duckdb"):
        self.dialect = dialect

    def translate_query(
        self,
        table_name: str,
        where: Optional[Mapping[str, Mapping[str, Any]]] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        columns: Optional[Sequence[str]] = None,
    ) -> Tuple[str, List[Any]]:
        """Translate a table lookup into SQL and its parameter list."""
        params: List[Any] = []

        if columns:
            query = exp.select(*[exp.column(col, quoted=True) for col in columns])
        else:
            query = exp.select("*")
        query = query.from_(exp.table_(table_name, quoted=True))

        condition = self.translate_where(where or {}, params)
        if condition is not None:
            query = query.where(condition)

        if limit is not None:
            query = query.limit(int(limit))
        if offset is not None:
            query = query.offset(int(offset))

        return query.sql(dialect=self.dialect), params

    def translate_where(
        self,
        where: Mapping[str, Mapping[str, Any]],
        params: List[Any],
    ) -> Optional[exp.Expression]:
        """Build the conjunction of all column conditions, appending operands to ``params``."""
        conditions = []
        for column_name, operators in where.items():
            column = exp.column(column_name, quoted=True)
            for operator, value in operators.items():
                if value is None:
                    continue
                conditions.append(self._build_condition(column, operator, value, params))

        if not conditions:
            return None
        return exp.and_(*conditions)

    def _build_condition(
        self,
        column: exp.Expression,
        operator: str,
        value: Any,
        params: List[Any],
    ) -> exp.Expression:
        if operator in LIST_OPERATORS:
            values = list(value) if isinstance(value, (list, tuple, set)) else [value]
            if not values:
                # Nothing is in an empty list
                return exp.false() if operator == "in" else exp.true()

            placeholders = []
            for item in values:
                params.append(item)
                placeholders.append(exp.Placeholder())
            condition = exp.In(this=column, expressions=placeholders)
            return exp.Not(this=condition) if operator == "nin" else condition

        build = SCALAR_OPERATORS.get(operator)
        if build is None:
            raise ValueError(f"Unsupported filter operator: {operator}")

        params.append(value)
        return build(column, exp.Placeholder())
