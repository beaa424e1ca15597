import logging
import os
import threading
import time
from typing import Dict, List, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine
from dotenv import load_dotenv

from eazy_orm.errors import ArgumentError, ConfigurationError

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3306


class MysqlServer:
    """
    Параметры подключения к одному MySQL-серверу.
    Сам по себе ничего не открывает: движок создаётся по требованию.
    """

    def __init__(self, host: str, username: str, password: str, database: str, port: int = DEFAULT_PORT):
        self.host = host
        self.username = username
        self.password = password
        self.database = database
        self.port = port

    def __repr__(self) -> str:
        # пароль в логи не пишем
        return f"MysqlServer(host={self.host!r}, port={self.port}, database={self.database!r}, username={self.username!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MysqlServer):
            return NotImplemented
        return (self.host, self.username, self.password, self.database, self.port) == (
            other.host, other.username, other.password, other.database, other.port
        )

    def url(self) -> URL:
        return URL.create(
            "mysql+pymysql",
            username=self.username,
            password=self.password,
            host=self.host,
            port=self.port,
            database=self.database,
        )

    def create_engine(self) -> Engine:
        """
        SQLAlchemy Engine для этого сервера. Пул держит соединения открытыми,
        ошибки драйвера поднимаются исключениями.
        """
        return create_engine(
            self.url(),
            echo=False,
            pool_pre_ping=True,             # пинг перед выдачей соединения из пула
            connect_args={"connect_timeout": 5},
        )


# реестр конфигов и кеш движков по имени подключения
_connections: Dict[str, MysqlServer] = {}
_engines: Dict[str, Engine] = {}
_lock = threading.Lock()


def add_config(name: str, config: MysqlServer) -> None:
    """
    Зарегистрировать (или заменить) подключение под именем `name`.
    При замене кешированный движок сбрасывается.
    """
    if not name:
        raise ArgumentError("Connection name is empty")
    with _lock:
        _connections[name] = config
        old = _engines.pop(name, None)
    if old is not None:
        old.dispose()
    logger.debug("[db] registered '%s': %r", name, config)


def get_config(name: str) -> MysqlServer:
    with _lock:
        config = _connections.get(name)
    if config is None:
        raise ConfigurationError(f"Connection '{name}' is not registered")
    return config


def list_configs() -> List[str]:
    with _lock:
        return sorted(_connections)


def remove_config(name: str) -> None:
    with _lock:
        _connections.pop(name, None)
        engine = _engines.pop(name, None)
    if engine is not None:
        engine.dispose()


def get_engine(name: str) -> Engine:
    """
    Возвращает (или создаёт) SQLAlchemy Engine для зарегистрированного подключения.
    Конфиг читается под тем же локом, что и кеш движков.
    """
    with _lock:
        config = _connections.get(name)
        if config is None:
            raise ConfigurationError(f"Connection '{name}' is not registered")
        engine = _engines.get(name)
        if engine is None:
            engine = config.create_engine()
            _engines[name] = engine
            logger.debug("[db] engine created for '%s'", name)
    return engine


def test_connection(name: str) -> bool:
    """
    Проверить подключение из реестра запросом SELECT 1.
    Не бросает исключений: неизвестное имя или ошибка драйвера -> False и запись в лог.
    """
    try:
        eng = get_engine(name)
        t0 = time.perf_counter()
        with eng.connect() as conn:
            conn.execute(text("SELECT 1"))
        dt = (time.perf_counter() - t0) * 1000
        logger.info("[db] OK  '%s' (%.1f ms)", name, dt)
        return True
    except Exception as e:
        logger.warning("[db] ERR '%s': %s", name, e)
        return False


def startup_healthcheck() -> None:
    """
    Явная проверка реестра при старте. Имена подключений (через запятую)
    берутся из STARTUP_CHECK_DBS, STARTUP_CHECK=0 отключает проверку.
    С STARTUP_STRICT=1 любой неудачный пинг -> ConfigurationError,
    иначе только предупреждение в логе.
    """
    if os.getenv("STARTUP_CHECK", "1") != "1":
        return

    raw = os.getenv("STARTUP_CHECK_DBS", "").strip()
    names = [x.strip() for x in raw.split(",") if x.strip()]
    if not names:
        return

    logger.info("[startup] health check for: %s", ", ".join(names))
    failures = sum(1 for name in names if not test_connection(name))

    if failures:
        msg = f"[startup] {failures} connection(s) failed"
        if os.getenv("STARTUP_STRICT", "0") == "1":
            raise ConfigurationError(msg)
        logger.warning(msg)


def config_from_env(prefix: str = "DB_") -> MysqlServer:
    """
    Собрать MysqlServer из переменных окружения (.env тоже читается):
    {prefix}HOST, {prefix}USERNAME, {prefix}PASSWORD, {prefix}DATABASE, {prefix}PORT.
    """
    host = os.getenv(f"{prefix}HOST")
    database = os.getenv(f"{prefix}DATABASE")
    if not host or not database:
        raise ConfigurationError(f"{prefix}HOST and {prefix}DATABASE must be set. Please configure them in your .env file.")

    raw_port: Optional[str] = os.getenv(f"{prefix}PORT")
    try:
        port = int(raw_port) if raw_port else DEFAULT_PORT
    except ValueError:
        raise ConfigurationError(f"{prefix}PORT must be an integer, got {raw_port!r}") from None

    return MysqlServer(
        host=host,
        username=os.getenv(f"{prefix}USERNAME", ""),
        password=os.getenv(f"{prefix}PASSWORD", ""),
        database=database,
        port=port,
    )


def register_from_env(name: str = "default", prefix: str = "DB_") -> MysqlServer:
    config = config_from_env(prefix)
    add_config(name, config)
    return config
