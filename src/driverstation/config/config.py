import inspect
import os
import platform

from configobj import ConfigObj, ConfigObjError, flatten_errors
from validate import Validator

from driverstation.protocol.codec import Mode

# The default extension for configuration files
config_extension = '.cfg'

config_name = 'driverstation'
config_directory = os.path.dirname(__file__)


class ConfigurationError(ValueError):
    """ The station configuration is missing a value or has an invalid one. """


def config_flavor(name, flavor=None):
    return name if not flavor else name + '.' + flavor


def config_filename(name, directory):
    return os.path.join(directory, name + config_extension)


def load_config_file_base(file, must_exist=True, **kwargs) -> ConfigObj:
    """
    Loads a configuration file
    :param file:        The configuration file to load
    :param must_exist:  when True, the file must exist or an exception is thrown.
    :return: The ConfigObj instance for the file.
    """
    try:
        return ConfigObj(file, file_error=must_exist, **kwargs) \
            if must_exist or os.path.exists(file) else ConfigObj(**kwargs)
    except ConfigObjError as e:
        raise type(e)(str(e) + ' at ' + file)


def config_flavor_file(name, directory, flavor=None) -> ConfigObj:
    """
    Loads a specialization of a config file, named after the base followed by a period
    and the flavor. Missing files yield an empty configuration.
    """
    return load_config_file_base(config_filename(config_flavor(name, flavor), directory), False)


def map_os_name(name):
    """
    >>> map_os_name('Windows')
    'windows'
    >>> map_os_name("Darwin")
    'osx'
    """
    name = name.lower()
    if name == 'darwin':
        name = 'osx'
    return name


def os_name():
    return map_os_name(platform.system())


def load_config(name=config_name, directory=config_directory, user_directory='~', overrides=None) -> ConfigObj:
    """
    Loads all the configuration files that relate to the given name, in this order,
    with later files taking precedence:
    - the default specialization
    - the platform specialization
    - the user override, in the user's home directory
    - the base configuration
    - the overrides given, typically from the command line
    The result is validated against the schema specialization, which also supplies defaults.
    :raises ConfigurationError: when validation fails
    """
    schema = config_filename(config_flavor(name, 'schema'), directory)
    config = ConfigObj(configspec=load_config_file_base(schema, False, list_values=False, _inspec=True))
    config.merge(config_flavor_file(name, directory, 'default'))
    config.merge(config_flavor_file(name, directory, os_name()))
    config.merge(load_config_file_base(
        os.path.join(os.path.expanduser(user_directory), name + config_extension), must_exist=False))
    config.merge(config_flavor_file(name, directory))
    if overrides:
        config.merge(overrides)

    result = config.validate(Validator(), preserve_errors=True)
    if result is not True:
        problems = []
        for sections, key, error in flatten_errors(config, result):
            path = '.'.join(sections + [key]) if key is not None else '.'.join(sections)
            problems.append("%s: %s" % (path, error or 'missing'))
        raise ConfigurationError("the config %s failed validation: %s" % (name, '; '.join(problems)))
    return config


class StationConfig:
    """
    The settings needed to build a driver station.
    The team number is required and must be a positive integer.
    """

    alliances = ('red', 'blue')

    def __init__(self, team_number, alliance='red', position=1, mode='disabled',
                 robot_port=1110, station_port=1150, bind_address='', resolver='hostname', address=None,
                 discovery_period=1.0, heartbeat_period=0.02, missed_packet_threshold=10):
        self.team_number = team_number
        self.alliance = alliance or 'red'
        self.position = position or 1
        self.mode = mode
        self.robot_port = robot_port
        self.station_port = station_port
        self.bind_address = bind_address
        self.resolver = resolver
        self.address = address
        self.discovery_period = discovery_period
        self.heartbeat_period = heartbeat_period
        self.missed_packet_threshold = missed_packet_threshold
        self.validate()

    def validate(self):
        if self.team_number is None:
            raise ConfigurationError('Missing team_number')
        if isinstance(self.team_number, bool) or not isinstance(self.team_number, int) or self.team_number < 1:
            raise ConfigurationError('Invalid team_number: %r' % (self.team_number,))
        if self.alliance not in self.alliances:
            raise ConfigurationError("Invalid alliance '%s', expected red or blue" % self.alliance)
        if isinstance(self.position, bool) or not isinstance(self.position, int) or not 1 <= self.position <= 3:
            raise ConfigurationError('Invalid position: %r' % (self.position,))
        try:
            Mode.parse(self.mode)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        if self.resolver == 'static' and not self.address:
            raise ConfigurationError('A static resolver needs an address')
        if self.discovery_period <= 0 or self.heartbeat_period <= 0:
            raise ConfigurationError('Timer periods must be positive')
        if self.missed_packet_threshold < 1:
            raise ConfigurationError('missed_packet_threshold must be at least 1')

    @classmethod
    def from_config(cls, config: ConfigObj):
        """ builds the station config from the sections of a loaded configuration """
        known = inspect.signature(cls).parameters
        values = {}
        for section in ('station', 'network', 'timing'):
            values.update((k, v) for k, v in config.get(section, {}).items() if k in known)
        return cls(**values)

    def __repr__(self):
        return "StationConfig(%s)" % ', '.join('%s=%r' % kv for kv in sorted(self.__dict__.items()))


def load_station_config(overrides=None, directory=config_directory, user_directory='~') -> StationConfig:
    """ loads and validates the configuration files, applying any overrides """
    return StationConfig.from_config(load_config(config_name, directory, user_directory, overrides))
