from .version import APP_VERSION as __version__
