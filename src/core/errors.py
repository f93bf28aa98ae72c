"""Исключения движка.

- RemoteCommandError: команда store завершилась ошибкой (без retry)
- BulkCommandError: bulk-команда завершилась частично (несёт BulkCommandResult)
- MissingItemIdentity: операция над legacy item без id
"""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from src.core.domain.basket import BulkCommandResult


class CoopEngineError(Exception):
    """Базовое исключение движка."""


class RemoteCommandError(CoopEngineError):
    """Ошибка удалённой команды (mark-paid, toggle-prepared, delete-item).

    Attributes:
        command: имя команды store
        target: цель команды (например, "order-1/item-2")
    """

    def __init__(self, command: str, target: str, message: Optional[str] = None):
        self.command = command
        self.target = target
        super().__init__(message or f"Remote command {command!r} failed for {target}")


class BulkCommandError(CoopEngineError):
    """Bulk-команда завершилась с ошибками хотя бы у одной цели."""

    def __init__(self, result: "BulkCommandResult"):
        self.result = result
        super().__init__(
            f"Bulk command failed for {result.failed} of {result.total} targets "
            f"({result.succeeded} succeeded)"
        )


class MissingItemIdentity(CoopEngineError, ValueError):
    """Line item без id нельзя адресовать командой store."""

    def __init__(self, order_id: str, article_id: Optional[str] = None):
        self.order_id = order_id
        self.article_id = article_id
        article = f" (article {article_id})" if article_id else ""
        super().__init__(f"Item of order {order_id}{article} has no id")
