"""
Базовый класс Seiso клиента.

HTTP слой поверх requests: basic auth, пагинация, распаковка
HAL-конвертов (_embedded / page / _links) и маппинг HTTP ошибок
в исключения core.exceptions.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence

import requests
import urllib3

from ...core.constants import DEFAULT_PAGE_SIZE, HTTP_CONFLICT, HTTP_NOT_FOUND
from ...core.exceptions import (
    ConfigError,
    ConflictError,
    InventoryAPIError,
    NotFoundError,
    TransientError,
)

logger = logging.getLogger(__name__)


class SeisoSession(requests.Session):
    """requests.Session с таймаутом по умолчанию."""

    def __init__(self, timeout: int = 30):
        super().__init__()
        self.timeout = timeout
        self.headers.update({"Accept": "application/hal+json, application/json"})

    def request(self, method, url, **kwargs):
        kwargs.setdefault("timeout", self.timeout)
        return super().request(method, url, **kwargs)


@dataclass
class Page:
    """
    Одна страница коллекции.

    Attributes:
        items: Записи страницы
        page: Номер страницы (с 1)
        total_pages: Всего страниц по данным API
    """
    items: List[Dict[str, Any]] = field(default_factory=list)
    page: int = 1
    total_pages: int = 1

    @property
    def has_next(self) -> bool:
        return bool(self.items) and self.page < self.total_pages


def record_link(record: Dict[str, Any]) -> str:
    """Self-ссылка записи (_links.self.href)."""
    try:
        return record["_links"]["self"]["href"]
    except (KeyError, TypeError):
        raise InventoryAPIError("Запись Seiso без _links.self.href")


def record_id(record: Dict[str, Any]) -> str:
    """ID записи: последний сегмент self-ссылки."""
    return record_link(record).rstrip("/").split("/")[-1]


def as_list(data: Any) -> List[Dict[str, Any]]:
    """Ответ поиска: None -> [], одна запись -> [запись]."""
    if data is None:
        return []
    if isinstance(data, list):
        return data
    return [data]


class SeisoClientBase:
    """
    Базовый класс для Seiso клиента.

    Отвечает за подключение к API и выполнение запросов.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        verify_ssl: bool = False,
        timeout: int = 30,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_workers: int = 8,
        environments: Optional[Dict[str, Any]] = None,
        data_centers: Optional[Dict[str, Any]] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Инициализация клиента Seiso.

        Args:
            url: Базовый URL Seiso API
            username: Логин для basic auth
            password: Пароль (уже декодированный)
            verify_ssl: Проверять SSL сертификат
            timeout: Таймаут HTTP запроса
            page_size: Размер страницы для GET
            max_workers: Потоков для параллельных вызовов
            environments: Переопределения справочника environments (key -> запись)
            data_centers: Переопределения справочника dataCenters (key -> запись)
            session: Готовая сессия (для тестов)

        Raises:
            ConfigError: URL или учётные данные не указаны
        """
        if not (url and username and password):
            raise ConfigError(
                "Неполная конфигурация Seiso клиента: нужны url, username и password",
                key="seiso",
            )

        self.url = url.rstrip("/")
        self.page_size = page_size
        self.max_workers = max_workers

        self.session = session or SeisoSession(timeout=timeout)
        self.session.auth = (username, password)
        self.session.verify = verify_ssl
        if not verify_ssl:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        # Справочники из конфигурации имеют приоритет над загруженными из API
        self._configured_environments = dict(environments or {})
        self._configured_data_centers = dict(data_centers or {})
        self._domain_cache = None
        self._domain_lock = threading.Lock()

        # service instance id -> default IpAddressRole
        self._default_roles: Dict[str, Dict[str, Any]] = {}
        self._roles_lock = threading.Lock()

        logger.info(f"Seiso клиент инициализирован: {self.url}")

    def connect(self) -> None:
        """
        Проверка подключения к Seiso (GET корня API).

        Raises:
            InventoryAPIError / TransientError: API недоступен
        """
        logger.info(f"Подключение к Seiso: {self.url}")
        self.request("")

    # ==================== ЗАПРОСЫ ====================

    @staticmethod
    def embedded_name(resource: str) -> str:
        """Имя коллекции в _embedded по умолчанию: первый сегмент пути."""
        return resource.strip("/").split("/")[0]

    def request(
        self,
        resource: str,
        payload: Optional[Dict[str, Any]] = None,
        method: str = "GET",
        params: Optional[Dict[str, Any]] = None,
        ignored_status_codes: Sequence[int] = (),
        embedded: Optional[str] = None,
        page: int = 1,
        size: Optional[int] = None,
    ) -> Any:
        """
        Выполняет запрос к Seiso API.

        Коллекции распаковываются из _embedded в список.

        Args:
            resource: Путь ресурса относительно URL (например nodes/search/findByName)
            payload: JSON тело
            method: HTTP метод
            params: Query параметры
            ignored_status_codes: Коды ответа, которые означают "нет результата" (None)
            embedded: Имя коллекции в _embedded (по умолчанию первый сегмент resource)
            page: Номер страницы, с 1
            size: Размер страницы

        Returns:
            dict, list или None

        Raises:
            NotFoundError: 404 (если не в ignored_status_codes)
            ConflictError: 409 (если не в ignored_status_codes)
            InventoryAPIError: Прочие HTTP ошибки
            TransientError: Сетевая ошибка
        """
        data = self._send(resource, payload, method, params, ignored_status_codes, page, size)
        return self._unwrap(resource, data, embedded)

    def request_page(
        self,
        resource: str,
        params: Optional[Dict[str, Any]] = None,
        embedded: Optional[str] = None,
        page: int = 1,
        size: Optional[int] = None,
        ignored_status_codes: Sequence[int] = (),
    ) -> Page:
        """Одна страница коллекции вместе с page.totalPages."""
        data = self._send(resource, None, "GET", params, ignored_status_codes, page, size)
        if data is None:
            return Page(items=[], page=page, total_pages=0)

        items = as_list(self._unwrap(resource, data, embedded))
        total_pages = 1
        if isinstance(data, dict):
            total_pages = (data.get("page") or {}).get("totalPages") or 1
        return Page(items=items, page=page, total_pages=total_pages)

    def iter_all(
        self,
        resource: str,
        params: Optional[Dict[str, Any]] = None,
        embedded: Optional[str] = None,
    ) -> Iterator[Dict[str, Any]]:
        """Итерирует все записи коллекции, страница за страницей."""
        page = 1
        while True:
            result = self.request_page(resource, params=params, embedded=embedded, page=page)
            yield from result.items
            if not result.has_next:
                break
            page += 1

    def _send(
        self,
        resource: str,
        payload: Optional[Dict[str, Any]],
        method: str,
        params: Optional[Dict[str, Any]],
        ignored_status_codes: Sequence[int],
        page: int,
        size: Optional[int],
    ) -> Any:
        url = f"{self.url}/{resource}"
        query = dict(params or {})
        if method == "GET":
            query.setdefault("size", size or self.page_size)
            # API считает страницы с нуля
            query["page"] = max(page, 1) - 1

        logger.debug(f"Seiso {method} {url} params={query}")
        try:
            response = self.session.request(
                method,
                url,
                params=query or None,
                json=payload,
            )
        except requests.RequestException as e:
            raise TransientError(f"Seiso {method} {resource or '/'} не выполнен: {e}", service="seiso")

        if response.status_code >= 400:
            if response.status_code in ignored_status_codes:
                logger.debug(f"Seiso {method} {resource}: HTTP {response.status_code} проигнорирован")
                return None
            raise self._error_for(response, resource, method)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise InventoryAPIError(
                f"Seiso {method} {resource or '/'}: ответ не JSON",
                status_code=response.status_code,
                endpoint=resource,
            )

    def _unwrap(self, resource: str, data: Any, embedded: Optional[str]) -> Any:
        if not resource or not isinstance(data, dict):
            return data
        name = embedded or self.embedded_name(resource)
        collection = data.get("_embedded")
        # Одиночная запись тоже может содержать _embedded (ассоциации)
        if isinstance(collection, dict) and name in collection:
            return collection[name]
        # Пустая коллекция приходит без _embedded
        if "page" in data or embedded:
            return []
        return data

    @staticmethod
    def _error_for(response: requests.Response, resource: str, method: str) -> InventoryAPIError:
        status = response.status_code
        message = f"Seiso {method} {resource or '/'}: HTTP {status}"
        body = (response.text or "")[:200]
        if body:
            message = f"{message}: {body}"

        if status == HTTP_NOT_FOUND:
            error_cls = NotFoundError
        elif status == HTTP_CONFLICT:
            error_cls = ConflictError
        else:
            error_cls = InventoryAPIError
        return error_cls(message, status_code=status, endpoint=resource)
