"""Abstracoes e implementacoes de cache com expiracao por entrada."""

import inspect
import json
import sqlite3
import time
from pathlib import Path
from threading import Lock
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Tuple, Union

import redis.asyncio as redis


class CacheBackend(Protocol):
    """Interface exigida de qualquer cache injetado.

    Implementacoes podem ser sincronas ou assincronas: quem consome aguarda o
    retorno quando ele e awaitable.
    """

    def set(self, key: str, value: Any, ttl_seconds: float) -> Union[None, Awaitable[None]]:
        """Armazena value em key com expiracao em ttl_seconds a partir de agora."""

    def get(self, key: str) -> Union[Any, Awaitable[Any]]:
        """Retorna o valor de key ou None se ausente ou expirado."""

    def delete(self, key: str) -> Union[None, Awaitable[None]]:
        """Remove key incondicionalmente."""


async def maybe_await(result: Any) -> Any:
    """Aguarda result se for awaitable; permite backends sincronos e assincronos."""
    if inspect.isawaitable(result):
        return await result
    return result


def _check_key(key: str) -> None:
    if not isinstance(key, str) or not key:
        raise ValueError("key deve ser uma string nao vazia")


class ExpiringStore:
    """Cache em memoria com expiracao preguicosa e lock por operacao."""

    def __init__(self, time_fn: Callable[[], float] = time.time) -> None:
        self._time_fn = time_fn
        self._lock = Lock()
        self._entries: Dict[str, Tuple[Any, float]] = {}

    def _live_entry(self, key: str, now: float) -> Optional[Tuple[Any, float]]:
        # Chamar com o lock adquirido.
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry[1] <= now:
            del self._entries[key]
            return None
        return entry

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Armazena um valor sobrescrevendo qualquer entrada anterior.

        Args:
            key (str): Chave da entrada.
            value (Any): Valor arbitrario.
            ttl_seconds (float): Tempo de vida em segundos. Zero ou negativo deixa a
                entrada expirada para qualquer leitura posterior.

        Raises:
            ValueError: Se key nao for uma string nao vazia.
        """
        self._put(key, value, self._time_fn() + ttl_seconds)

    def _put(self, key: str, value: Any, expires_at: float) -> None:
        _check_key(key)
        with self._lock:
            self._entries[key] = (value, expires_at)

    def get(self, key: str) -> Any:
        """Retorna o valor se presente e nao expirado, senao None.

        Entradas expiradas encontradas na busca sao descartadas.
        """
        now = self._time_fn()
        with self._lock:
            entry = self._live_entry(key, now)
        return None if entry is None else entry[0]

    def delete(self, key: str) -> None:
        """Remove a chave; nao falha se ausente."""
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        """Remove todas as entradas expiradas e retorna quantas foram removidas."""
        now = self._time_fn()
        with self._lock:
            expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        now = self._time_fn()
        with self._lock:
            return self._live_entry(key, now) is not None

    def __len__(self) -> int:
        now = self._time_fn()
        with self._lock:
            return sum(1 for _, expires_at in self._entries.values() if expires_at > now)


_SQLITE_SCHEMA = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;
CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    expires_at REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_cache_entries_expires_at ON cache_entries(expires_at);
"""


def _ensure_parent_dir(db_file: Path) -> Path:
    """Resolve db_file e garante que o diretorio pai exista e seja um diretorio."""
    db_file = db_file.resolve()
    parent = db_file.parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
    except FileExistsError as e:
        raise ValueError(f"O caminho {parent} existe mas nao e um diretorio") from e
    except OSError as e:
        raise ValueError(f"Nao foi possivel criar o diretorio {parent}: {e}") from e
    return db_file


def _connect(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.executescript(_SQLITE_SCHEMA)
    return conn


class SQLiteExpiringStore:
    """Cache em SQLite com limpeza periodica.

    Valores sao gravados como JSON; apenas dados serializaveis sao aceitos.
    A conexao e compartilhada entre threads e protegida por um lock.
    """

    def __init__(
        self,
        db_path: str,
        cleanup_interval_seconds: int = 300,
        time_fn: Callable[[], float] = time.time,
    ) -> None:
        """Abre (ou cria) o banco em db_path.

        Args:
            db_path (str): Arquivo SQLite; diretorios ausentes sao criados.
            cleanup_interval_seconds (int): Periodo minimo entre limpezas de entradas expiradas.
            time_fn (Callable[[], float]): Relogio usado para calcular expiracoes.

        Raises:
            ValueError: Se db_path ou cleanup_interval_seconds forem invalidos, ou se o
                diretorio do banco nao puder ser usado.
        """
        if not isinstance(db_path, str) or not db_path.strip():
            raise ValueError("db_path deve ser uma string valida")
        if cleanup_interval_seconds <= 0:
            raise ValueError("cleanup_interval_seconds deve ser positivo")

        self._db_path = str(_ensure_parent_dir(Path(db_path)))
        self._cleanup_interval_seconds = cleanup_interval_seconds
        self._time_fn = time_fn
        self._last_cleanup = 0.0
        self._lock = Lock()
        self._conn = _connect(self._db_path)

    def close(self) -> None:
        """Fecha a conexao com o SQLite."""
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "SQLiteExpiringStore":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def _maybe_cleanup(self, now: float) -> None:
        # Chamar com o lock adquirido.
        if now - self._last_cleanup < self._cleanup_interval_seconds:
            return
        self._conn.execute("DELETE FROM cache_entries WHERE expires_at <= ?", (now,))
        self._conn.commit()
        self._last_cleanup = now

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Armazena value serializado em JSON, sobrescrevendo a entrada anterior.

        Raises:
            ValueError: Se key for invalida.
            TypeError: Se value nao for serializavel em JSON.
        """
        _check_key(key)
        raw = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
        now = self._time_fn()
        with self._lock:
            self._maybe_cleanup(now)
            self._conn.execute(
                """
                INSERT OR REPLACE INTO cache_entries (key, value, expires_at)
                VALUES (?, ?, ?)
                """,
                (key, raw, now + ttl_seconds),
            )
            self._conn.commit()

    def get(self, key: str) -> Any:
        now = self._time_fn()
        with self._lock:
            self._maybe_cleanup(now)
            row = self._conn.execute(
                "SELECT value, expires_at FROM cache_entries WHERE key = ? LIMIT 1",
                (key,),
            ).fetchone()
            if row is None:
                return None
            if row[1] <= now:
                self._conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
                self._conn.commit()
                return None
        return json.loads(row[0])

    def delete(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
            self._conn.commit()


class RedisExpiringStore:
    """Cache compartilhado em Redis para implantacoes com varias instancias.

    A expiracao e delegada ao proprio Redis (SET com PX). Valores sao gravados
    como JSON.
    """

    def __init__(self, client: "redis.Redis", prefix: str = "jwtlifecycle:") -> None:
        self._redis = client
        self._prefix = prefix

    @classmethod
    def from_url(
        cls, url: str, prefix: str = "jwtlifecycle:", **kwargs: Any
    ) -> "RedisExpiringStore":
        """Cria o store a partir de uma URL redis://.

        Args:
            url (str): URL de conexao.
            prefix (str): Prefixo aplicado a todas as chaves.
            **kwargs: Repassados para redis.asyncio.from_url.
        """
        kwargs.setdefault("decode_responses", True)
        kwargs.setdefault("socket_connect_timeout", 5)
        kwargs.setdefault("socket_timeout", 5)
        return cls(redis.from_url(url, **kwargs), prefix=prefix)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        _check_key(key)
        ttl_ms = int(ttl_seconds * 1000)
        if ttl_ms <= 0:
            # Redis nao aceita expiracao nao positiva; ausencia e o estado observavel correto.
            await self._redis.delete(self._key(key))
            return
        raw = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
        await self._redis.set(self._key(key), raw, px=ttl_ms)

    async def get(self, key: str) -> Any:
        raw = await self._redis.get(self._key(key))
        if raw is None:
            return None
        return json.loads(raw)

    async def delete(self, key: str) -> None:
        await self._redis.delete(self._key(key))

    async def close(self) -> None:
        await self._redis.aclose()
