from __future__ import annotations
import logging
from typing import Any, List, Optional, Sequence, TypedDict

from eazy_orm.errors import ArgumentError, ConfigurationError

logger = logging.getLogger(__name__)


class QueryResult(TypedDict):
    sql: str              # готовый SQL с плейсхолдерами `?`
    bindings: List[Any]   # значения в порядке следования плейсхолдеров


class QueryBuilder:
    """
    Накопитель условий для одного SELECT-запроса.
    Ничего не выполняет: только собирает пару (sql, bindings),
    которую потом исполняет внешний код.

    Экземпляр одноразовый и не потокобезопасный.
    """

    def __init__(self, table: Optional[str] = None, connection: Optional[str] = None):
        if not table:
            raise ConfigurationError("Table name is required to build a query")
        self._table_name = table
        self.connection = connection or None

        self.wheres: List[str] = []
        self.bindings: List[Any] = []
        self.orders: List[str] = []
        self.group_by_fields: List[str] = []
        self.limit: Optional[int] = None

    @property
    def table_name(self) -> str:
        return self._table_name

    # ---- WHERE ----

    def where(self, field: str, operator: str, value: Any) -> "QueryBuilder":
        """
        Добавить условие `field operator ?`.
        Оператор подставляется как есть, без проверки.
        """
        self.wheres.append(f"{field} {operator} ?")
        self.bindings.append(value)
        return self

    def where_raw(self, sql: str, values: Sequence[Any]) -> "QueryBuilder":
        """
        Добавить сырой фрагмент WHERE.
        ВНИМАНИЕ: за безопасность SQL отвечает вызывающий код.
        """
        values = list(values)
        placeholders = sql.count("?")
        if placeholders != len(values):
            raise ArgumentError(
                f"Number of placeholders ({placeholders}) doesn't match number of values ({len(values)})"
            )
        self.wheres.append(sql)
        self.bindings.extend(values)
        return self

    def where_in(self, field: str, values: Sequence[Any]) -> "QueryBuilder":
        # пустой список даст `IN ()` - большинство СУБД такое не примут
        values = list(values)
        placeholders = ", ".join("?" for _ in values)
        self.wheres.append(f"{field} IN ({placeholders})")
        self.bindings.extend(values)
        return self

    # ---- ORDER BY / GROUP BY ----

    def order_by(self, field: str, direction: str) -> "QueryBuilder":
        self.orders.append(f"{field} {direction}")
        return self

    def group_by(self, field: str) -> "QueryBuilder":
        if not field or not field.strip():
            raise ArgumentError("GROUP BY field name is empty")
        self.group_by_fields.append(field)
        return self

    # ---- терминальные вызовы ----

    def first(self) -> QueryResult:
        self.limit = 1
        return self.to_sql("SELECT *")

    def all(self, limit: Optional[int] = None) -> QueryResult:
        self.limit = limit
        return self.to_sql("SELECT *")

    def count(self) -> QueryResult:
        return self.to_sql("SELECT COUNT(*)")

    def to_sql(self, select_statement: str) -> QueryResult:
        """
        Собрать итоговый SQL. Порядок секций фиксирован:
        FROM -> WHERE -> GROUP BY -> ORDER BY -> LIMIT.
        Состояние билдера не меняется, повторный вызов даёт тот же результат.
        """
        sql = f"{select_statement} FROM {self._table_name}"

        if self.wheres:
            sql += " WHERE " + " AND ".join(self.wheres)

        if self.group_by_fields:
            sql += " GROUP BY " + ", ".join(self.group_by_fields)

        if self.orders:
            sql += " ORDER BY " + ", ".join(self.orders)

        # 0 и None одинаково означают "без лимита"
        if self.limit:
            sql += f" LIMIT {self.limit}"

        logger.debug("[sql] %s %r", sql, self.bindings)
        return {"sql": sql, "bindings": list(self.bindings)}
