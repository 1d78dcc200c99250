"""customdeb - aplica modificações declarativas a pacotes .deb existentes."""

__version__ = "0.1.0"
