"""
Cookie 持久化。

SessionCookieJar 同时作为 requests.Session 与 httpx.AsyncClient 的 Cookie 存储，
请求时附加 Cookie (读) 与响应写入 Cookie (写) 都经过 http.cookiejar 自带的互斥锁，
load/save 同样在该锁内完成。

文件格式为 UTF-8 JSON 数组:
    [{"name": ..., "value": ..., "domain": ..., "path": ..., "expires": null,
      "secure": true, "http_only": true}, ...]
"""

import json
import logging
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

from requests.cookies import RequestsCookieJar, create_cookie

from .config import IDAS_HOST
from .errors import CookieError, CookieOperation

logger = logging.getLogger(__name__)


@dataclass
class CookieRecord:
    name: str
    value: str
    domain: str
    path: str = "/"
    expires: Optional[int] = None
    secure: bool = False
    http_only: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CookieRecord":
        if not isinstance(data, dict):
            raise ValueError(f"cookie record must be an object, got {type(data).__name__}")

        record = cls(
            name=data["name"],
            value=data["value"],
            domain=data.get("domain") or "",
            path=data.get("path") or "/",
            expires=data.get("expires"),
            secure=data.get("secure", False),
            http_only=data.get("http_only", False),
        )
        for attr in ("name", "value", "domain", "path"):
            if not isinstance(getattr(record, attr), str):
                raise ValueError(f"cookie field '{attr}' must be a string")
        if not isinstance(record.secure, bool) or not isinstance(record.http_only, bool):
            raise ValueError("cookie flags must be booleans")
        if record.expires is not None and not isinstance(record.expires, int):
            raise ValueError("cookie 'expires' must be an integer timestamp")
        return record


def _is_http_only(cookie) -> bool:
    # requests.cookies.create_cookie (以及 jar.set) 默认带 HttpOnly 标记，需要普通 Cookie 时显式传 rest={}
    return cookie.has_nonstandard_attr("HttpOnly") or cookie.has_nonstandard_attr("httponly")


class SessionCookieJar(RequestsCookieJar):
    """带文件持久化的 Cookie 容器"""

    @property
    def lock(self):
        return self._cookies_lock

    @classmethod
    def load(cls, path: str, persist_expiry: bool = False) -> "SessionCookieJar":
        """
        从文件加载 Cookie。文件不存在、无法读取或格式错误时返回空容器，不向调用方抛出异常。
        """
        jar = cls()
        if not os.path.exists(path):
            logger.debug(f"Cookie 文件 {path} 不存在，使用空会话")
            return jar

        try:
            with open(path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except OSError as e:
            error = CookieError(f"failed to read {path}: {e}", CookieOperation.READ, cause=e)
            logger.warning(f"{error}，使用空会话")
            return jar
        except ValueError as e:
            error = CookieError(f"failed to parse {path}: {e}", CookieOperation.DESERIALIZE, cause=e)
            logger.warning(f"{error}，使用空会话")
            return jar

        if not isinstance(raw, list):
            logger.warning(f"Cookie 文件 {path} 不是 JSON 数组，使用空会话")
            return jar

        loaded = jar.add_records(raw, persist_expiry=persist_expiry)
        logger.info(f"已从 {path} 加载 {loaded} 个 Cookie")
        return jar

    def add_records(self, raw_records: List[Any], persist_expiry: bool = False) -> int:
        """逐条插入记录，跳过 domain 为空或无法解析的记录，返回成功插入的数量"""
        loaded = 0
        with self.lock:
            for raw in raw_records:
                try:
                    record = CookieRecord.from_dict(raw)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"跳过无法解析的 Cookie 记录: {e}")
                    continue

                if not record.domain:
                    logger.warning(f"跳过 domain 为空的 Cookie: {record.name}")
                    continue

                cookie = create_cookie(
                    record.name,
                    record.value,
                    domain=record.domain,
                    path=record.path,
                    secure=record.secure,
                    expires=record.expires if persist_expiry else None,
                    rest={"HttpOnly": None} if record.http_only else {},
                )
                if cookie.is_expired():
                    logger.debug(f"跳过已过期的 Cookie: {record.name}")
                    continue

                self.set_cookie(cookie)
                loaded += 1
        return loaded

    def records(self, default_domain: str = IDAS_HOST, persist_expiry: bool = False) -> List[CookieRecord]:
        """当前持有的全部 Cookie 的快照。没有 domain 的 Cookie 归属到 default_domain。"""
        with self.lock:
            cookies = list(self)

        records = []
        for cookie in cookies:
            domain = cookie.domain or default_domain
            if not domain:
                continue
            records.append(CookieRecord(
                name=cookie.name,
                value=cookie.value or "",
                domain=domain,
                path=cookie.path or "/",
                expires=cookie.expires if persist_expiry else None,
                secure=bool(cookie.secure),
                http_only=_is_http_only(cookie),
            ))
        return records

    def save(self, path: str, default_domain: str = IDAS_HOST, persist_expiry: bool = False) -> None:
        """
        将当前 Cookie 覆盖写入文件 (格式化 JSON)。

        异常:
            CookieError: 序列化或写文件失败。
        """
        with self.lock:
            records = self.records(default_domain=default_domain, persist_expiry=persist_expiry)
            try:
                payload = json.dumps([asdict(r) for r in records], ensure_ascii=False, indent=2)
            except (TypeError, ValueError) as e:
                raise CookieError(f"failed to serialize cookies: {e}", CookieOperation.SERIALIZE, cause=e) from e

            try:
                with open(path, 'w', encoding='utf-8') as f:
                    f.write(payload)
            except OSError as e:
                raise CookieError(f"failed to write {path}: {e}", CookieOperation.WRITE, cause=e) from e

        logger.debug(f"已保存 {len(records)} 个 Cookie 到 {path}")

    @staticmethod
    def remove_file(path: str) -> None:
        try:
            if os.path.exists(path):
                os.remove(path)
                logger.info(f"已删除 Cookie 文件 {path}")
        except OSError as e:
            raise CookieError(f"failed to remove {path}: {e}", CookieOperation.WRITE, cause=e) from e
