import json
import os
from gi.repository import GLib
import logging

logger = logging.getLogger(__name__)

NAME_TO_LOGGING_LEVEL = {
    'DEBUG': logging.DEBUG,
    'INFO': logging.INFO,
    'WARNING': logging.WARNING,
    'ERROR': logging.ERROR,
    'CRITICAL': logging.CRITICAL,
}


def _load_json(path):
    with open(path, encoding='utf-8') as f:
        return json.load(f)


def get_package_name():
    '''
    returns 'kanacomp'
    '''
    return 'kanacomp'


def get_version():
    return '0.1.0'


def get_datadir():
    '''
    Return the path to the data directory under user-independent (central)
    location (= not under the HOME)

    $KANACOMP_DATADIR wins; otherwise /opt/kanacomp when installed there,
    else the data/ directory next to src/ (development tree).
    '''
    datadir = os.environ.get('KANACOMP_DATADIR')
    if datadir:
        return datadir
    installed = os.path.join('/opt', get_package_name())
    if os.path.isdir(installed):
        return installed
    return os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'data')


def get_default_config_path():
    '''
    Return the path to the default config file in the system installation.
    This is the config.json that gets copied to user's home on first run.
    '''
    return os.path.join(get_datadir(), 'config.json')


def get_user_config_dir():
    '''
    Return the path to the config directory under $HOME.
    Typically, it would be $HOME/.config/kanacomp
    '''
    return os.path.join(GLib.get_user_config_dir(), get_package_name())


def get_default_socket_path():
    '''
    Return the default path of the server's Unix socket.
    Typically, it would be $XDG_RUNTIME_DIR/kanacomp.sock
    '''
    return os.path.join(GLib.get_user_runtime_dir(), get_package_name() + '.sock')


def get_socket_path(config):
    if config and config.get('socket_path'):
        return os.path.expanduser(config['socket_path'])
    return get_default_socket_path()


def get_resource_search_dirs():
    '''
    Directories searched for layouts/ and dictionaries/ before the resource
    directory given at initialization. User files override installed ones.
    '''
    return [get_user_config_dir()]


def get_logging_level(config):
    name = (config or {}).get('logging_level', 'WARNING')
    if name not in NAME_TO_LOGGING_LEVEL:
        logger.warning(f'Unknown logging_level "{name}"; using WARNING')
        return logging.WARNING
    return NAME_TO_LOGGING_LEVEL[name]


def get_config_data():
    '''
    This function is to load the config JSON file from the HOME/.config/kanacomp
    When the file is not present (e.g., after initial installation), it will copy
    the default config.json from the central location.

    Returns:
        tuple: (config_data, warnings_string) where warnings_string is empty if no warnings
    '''
    configfile_path = os.path.join(get_user_config_dir(), 'config.json')
    default_config_path = get_default_config_path()
    default_config = _load_json(default_config_path)
    warnings = ""

    if(not os.path.exists(configfile_path)):
        warning_msg = f'config.json is not found under {get_user_config_dir()} . Copying the default config.json from {default_config_path} ..'
        logger.warning(warning_msg)
        warnings = warning_msg
        os.makedirs(get_user_config_dir(), exist_ok=True)
        with open(configfile_path, 'w', encoding='utf-8') as f:
            json.dump(default_config, f, ensure_ascii=False)
        return(default_config, warnings)
    try:
        config_data = _load_json(configfile_path)
    except json.decoder.JSONDecodeError as e:
        logger.error(f'Error loading the config.json under {get_user_config_dir()}')
        logger.error(e)
        logger.error(f'Using (but not copying) the default config.json from {default_config_path} ..')
        return get_default_config_data(), warnings

    for k in default_config:
        if k not in config_data:
            warning_msg = f'The key "{k}" was not found in the config.json under {get_user_config_dir()} . Copying the default key-value'
            logger.warning(warning_msg)
            warnings += ("\n" if warnings else "") + warning_msg
            config_data[k] = default_config[k]
        if type(config_data[k]) != type(default_config[k]):
            warning_msg = f'Type mismatch found for the key "{k}" between config.json under {get_user_config_dir()} and default config.json. Replacing the value of this key with the value in default config.json'
            logger.warning(warning_msg)
            warnings += ("\n" if warnings else "") + warning_msg
            config_data[k] = default_config[k]

    # Deep validation for the nested "options" bundle
    if isinstance(config_data.get("options"), dict):
        for k, v in default_config.get("options", {}).items():
            if k not in config_data["options"]:
                warning_msg = f'The key "options.{k}" was not found in the config.json under {get_user_config_dir()} . Copying the default key-value'
                logger.warning(warning_msg)
                warnings += ("\n" if warnings else "") + warning_msg
                config_data["options"][k] = v

    return config_data, warnings


def save_config_data(config_data):
    '''
    Save config data to the user config directory.

    Args:
        config_data: Dictionary containing configuration data to save

    Returns:
        bool: True if save was successful, False otherwise
    '''
    configfile_path = os.path.join(get_user_config_dir(), 'config.json')

    try:
        # Ensure the config directory exists
        os.makedirs(get_user_config_dir(), exist_ok=True)

        # Write the config file with proper formatting
        with open(configfile_path, 'w', encoding='utf-8') as f:
            json.dump(config_data, f, ensure_ascii=False, indent=2)

        logger.info(f'Configuration saved successfully to {configfile_path}')
        return True
    except OSError as e:
        logger.error(f'Error saving config.json to {configfile_path}')
        logger.error(e)
        return False


def get_default_config_data():
    default_config_path = get_default_config_path()
    if not os.path.exists(default_config_path):
        logger.error(f'config.json is not found under {get_default_config_path()}. Please check that installation was done without problem!')
        return None
    default_config = _load_json(default_config_path)
    return default_config
