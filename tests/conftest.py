import os
import tempfile

# configuração isolada antes de qualquer import de customdeb
_CONF_DIR = tempfile.mkdtemp(prefix="customdeb-test-conf-")
_CONF = os.path.join(_CONF_DIR, "customdeb.conf")
with open(_CONF, "w", encoding="utf-8") as fh:
    fh.write(
        "[logging]\n"
        f"log_file = {os.path.join(_CONF_DIR, 'customdeb.log')}\n"
        f"history_file = {os.path.join(_CONF_DIR, 'history.log')}\n"
        "log_to_console = false\n"
        "level = debug\n"
        "\n"
        "[changelog]\n"
        "maintainer = Test Maintainer <test@example.org>\n"
        "\n"
        "[privilege]\n"
        "elevate = false\n"
    )
os.environ["CUSTOMDEB_CONFIG"] = _CONF
