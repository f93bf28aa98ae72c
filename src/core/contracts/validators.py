"""
JSON Schema Contract Validators

Модуль для валидации wire-формата store согласно формальным JSON Schema
контрактам. Использует библиотеку jsonschema (Draft 2020-12) до парсинга
в pydantic модели: форма payload проверяется отдельно от бизнес-правил.

Схемы:
- order.json (заказ / sale с line items)
- period.json (период поставки)
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable

import jsonschema
from jsonschema import Draft202012Validator, ValidationError


# =============================================================================
# SCHEMA LOADER
# =============================================================================


class SchemaLoader:
    """
    Загрузчик JSON Schema файлов.

    Схемы лежат в schema/ рядом с этим модулем (package data).
    """

    def __init__(self):
        self._schema_dir = Path(__file__).parent / "schema"
        if not self._schema_dir.exists():
            raise RuntimeError(f"Schema directory not found: {self._schema_dir}")

        # Кэш загруженных схем
        self._schemas: Dict[str, Dict[str, Any]] = {}

    @property
    def schema_dir(self) -> Path:
        return self._schema_dir

    def load_schema(self, schema_name: str) -> Dict[str, Any]:
        """
        Загрузка JSON Schema файла.

        Args:
            schema_name: Имя схемы без расширения (например, 'order')

        Returns:
            Загруженная схема как dict

        Raises:
            FileNotFoundError: Если файл схемы не найден
            ValueError: Если файл не является валидной JSON Schema
        """
        if schema_name in self._schemas:
            return self._schemas[schema_name]

        schema_path = self._schema_dir / f"{schema_name}.json"
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema not found: {schema_path}")

        with open(schema_path, "r", encoding="utf-8") as f:
            schema = json.load(f)

        # Meta-validation самой схемы
        try:
            Draft202012Validator.check_schema(schema)
        except jsonschema.SchemaError as e:
            raise ValueError(f"Invalid JSON Schema in {schema_name}.json: {e}") from e

        self._schemas[schema_name] = schema
        return schema


# Глобальный экземпляр загрузчика
_SCHEMA_LOADER = SchemaLoader()


# =============================================================================
# CONTRACT VALIDATORS
# =============================================================================


class ContractValidator:
    """
    Базовый класс для валидаторов контрактов.

    Инкапсулирует логику валидации данных против JSON Schema.
    """

    def __init__(self, schema_name: str):
        self.schema_name = schema_name
        self.schema = _SCHEMA_LOADER.load_schema(schema_name)
        self.validator = Draft202012Validator(self.schema)

    def validate(self, data: Dict[str, Any]) -> None:
        """
        Валидация данных против схемы.

        Raises:
            ValidationError: Если данные не соответствуют схеме
        """
        self.validator.validate(data)

    def is_valid(self, data: Dict[str, Any]) -> bool:
        return self.validator.is_valid(data)

    def iter_errors(self, data: Dict[str, Any]) -> Iterable[ValidationError]:
        """
        Итератор по всем ошибкам валидации.

        Yields:
            ValidationError объекты для каждой найденной ошибки
        """
        return self.validator.iter_errors(data)


class OrderValidator(ContractValidator):
    """Валидатор для order контракта."""

    def __init__(self):
        super().__init__("order")


class PeriodValidator(ContractValidator):
    """Валидатор для period контракта."""

    def __init__(self):
        super().__init__("period")


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def validate_order(data: Dict[str, Any]) -> None:
    """
    Валидация order payload.

    Raises:
        ValidationError: Если данные не соответствуют схеме
    """
    OrderValidator().validate(data)


def validate_period(data: Dict[str, Any]) -> None:
    """
    Валидация period payload.

    Raises:
        ValidationError: Если данные не соответствуют схеме
    """
    PeriodValidator().validate(data)
