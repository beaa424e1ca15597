class EazyOrmError(Exception):
    """Базовое исключение библиотеки."""


class ArgumentError(EazyOrmError, ValueError):
    """
    Некорректный аргумент: например, число плейсхолдеров `?`
    не совпадает с числом переданных значений.
    """


class ConfigurationError(EazyOrmError, RuntimeError):
    """
    Не хватает конфигурации: не задана таблица, неизвестное имя
    подключения, пустые переменные окружения.
    """
