"""
Custom transformers: подключаемые шаги обработки NodeRecord.

Transformer получает node от предыдущего шага и возвращает новый.
Цепочка выполняется строго последовательно и останавливается на
первой ошибке.

Подключение в config.yaml:
    custom_transformers:
      - name: defaults
        path: seiso_aws_sync.mapping.transformers:StaticAttributesTransformer
        config:
          service: web
          environment_type: test
          ports: [80, 443]
"""

import importlib
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional

from ..core.config_schema import CustomTransformerConfig
from ..core.exceptions import ConfigError, TransformerError
from ..core.models import NodeRecord

logger = logging.getLogger(__name__)


class CustomTransformer:
    """
    Базовый класс custom transformer.

    Подкласс переопределяет transform(); start()/stop() вызываются
    оркестратором при запуске и остановке.
    """

    name = "custom"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = dict(config or {})

    def start(self) -> None:
        pass

    def stop(self) -> None:
        pass

    def transform(self, node: NodeRecord) -> NodeRecord:
        raise NotImplementedError


class StaticAttributesTransformer(CustomTransformer):
    """Заполняет атрибуты node значениями из config (не перезаписывая заданные)."""

    name = "static-attributes"

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        super().__init__(config)
        overwrite = self.config.pop("overwrite", False)
        self.overwrite = bool(overwrite)

    def transform(self, node: NodeRecord) -> NodeRecord:
        changes = {}
        for key, value in self.config.items():
            if not hasattr(node, key):
                raise ValueError(f"NodeRecord не имеет атрибута {key}")
            if self.overwrite or not getattr(node, key):
                changes[key] = value
        return replace(node, **changes)


@dataclass
class TransformOutcome:
    """Результат цепочки: node или ошибка шага."""
    node: Optional[NodeRecord] = None
    error: Optional[TransformerError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class TransformerChain:
    """Упорядоченная цепочка transformers."""

    def __init__(self, transformers: Iterable[CustomTransformer] = ()):
        self.transformers: List[CustomTransformer] = list(transformers)

    def __len__(self) -> int:
        return len(self.transformers)

    def __iter__(self):
        return iter(self.transformers)

    def run(self, node: NodeRecord) -> TransformOutcome:
        for transformer in self.transformers:
            name = getattr(transformer, "name", transformer.__class__.__name__)
            logger.debug(f"Вызов transformer {name}")
            try:
                result = transformer.transform(node)
            except Exception as e:
                return TransformOutcome(error=TransformerError(
                    f"Transformer {name} завершился ошибкой",
                    transformer=name,
                    cause=e,
                ))
            if not isinstance(result, NodeRecord):
                return TransformOutcome(error=TransformerError(
                    f"Transformer {name} не вернул NodeRecord",
                    transformer=name,
                ))
            node = result
        return TransformOutcome(node=node)


def load_transformers(configs: Iterable[Any]) -> List[CustomTransformer]:
    """
    Создаёт transformers по конфигурации "module:Class".

    Args:
        configs: CustomTransformerConfig или dict {name, path, config}

    Raises:
        ConfigError: Модуль или класс не найден
    """
    transformers = []
    for cfg in configs or []:
        if isinstance(cfg, dict):
            cfg = CustomTransformerConfig(**cfg)

        module_path, _, class_name = cfg.path.partition(":")
        try:
            module = importlib.import_module(module_path)
            transformer_cls = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ConfigError(
                f"Не удалось загрузить transformer {cfg.name} ({cfg.path}): {e}",
                key="custom_transformers",
            )

        transformer = transformer_cls(cfg.config)
        transformer.name = cfg.name
        transformers.append(transformer)
        logger.info(f"Подключен transformer {cfg.name} ({cfg.path})")
    return transformers
