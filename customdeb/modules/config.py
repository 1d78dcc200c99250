import configparser
import os

DEFAULT_LOCATIONS = [
    "/etc/customdeb/customdeb.conf",
    os.path.expanduser("~/.config/customdeb/customdeb.conf"),
]


def _default_locations():
    env_path = os.environ.get("CUSTOMDEB_CONFIG")
    if env_path:
        return [env_path] + DEFAULT_LOCATIONS
    return list(DEFAULT_LOCATIONS)


class CustomdebConfig:
    def __init__(self, locations=None):
        self.locations = locations or _default_locations()
        self.config = configparser.ConfigParser()
        self.loaded_from = None
        self.reload()

    def reload(self):
        """(Re)carrega a configuração do primeiro arquivo disponível.

        Sem arquivo todas as opções usam o fallback de quem consulta.
        """
        self.config = configparser.ConfigParser()
        self.loaded_from = None
        for path in self.locations:
            if os.path.isfile(path):
                self.config.read(path)
                self.loaded_from = path
                return

    def get(self, section, option, fallback=None):
        try:
            return self.config.get(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError):
            return fallback

    def getboolean(self, section, option, fallback=False):
        try:
            return self.config.getboolean(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback

    def getint(self, section, option, fallback=0):
        try:
            return self.config.getint(section, option, fallback=fallback)
        except (configparser.NoSectionError, configparser.NoOptionError, ValueError):
            return fallback


# Instância global padrão para uso em outros módulos
config = CustomdebConfig()
