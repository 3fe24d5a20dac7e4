import click
import os
import shutil
import subprocess
import sys

from jtoolchain import config
from jtoolchain import filesystem as fs
from jtoolchain import log
from jtoolchain.error import raise_error, raise_error_if
from jtoolchain.model import ToolchainRequirement
from jtoolchain.registry import ToolchainRegistry
from jtoolchain.resolver import ToolchainResolver
from jtoolchain.version import __version__


debug_enabled = False


class ToolchainGroup(click.Group):
    def get_command(self, ctx, cmd_name):
        if ctx.params.get("verbose", 0) >= 3:
            log.set_level(log.EXCEPTION)
        elif ctx.params.get("verbose", 0) >= 2:
            log.set_level(log.DEBUG)
        elif ctx.params.get("verbose", 0) >= 1:
            log.set_level(log.VERBOSE)

        config_files = ctx.params.get("config_file") or []
        for config_file in config_files:
            log.verbose("Config: {0}", config_file)
            config.load_or_set(config_file)

        return click.Group.get_command(self, ctx, cmd_name)


@click.group(cls=ToolchainGroup)
@click.version_option(__version__)
@click.option("-v", "--verbose", count=True, help="Verbose output (repeat to raise verbosity).")
@click.option("-c", "--config", "config_file", multiple=True, type=str,
              help="Load a configuration file or set a configuration key.")
@click.option("-d", "--debugger", is_flag=True,
              help="Attach debugger on exception.")
@click.pass_context
def cli(ctx, verbose, config_file, debugger):
    """
    A Java toolchain resolver.

    Selects toolchains declared in the Maven toolchains.xml file, or
    provisions missing JDKs using JBang or the foojay JDK catalog:

      $ jtoolchain resolve jdk:version=17,vendor=temurin

    """

    global debug_enabled
    debug_enabled = debugger

    if ctx.invoked_subcommand not in ["log"]:
        log.start_file_log()

    log.verbose("jtoolchain version: {}", __version__)
    log.verbose("jtoolchain command: {}", " ".join([fs.path.basename(sys.argv[0])] + sys.argv[1:]))
    log.verbose("jtoolchain registry: {}", config.get_registry_path())


@cli.command()
@click.argument("requirement", type=str, nargs=-1, required=False)
@click.option("-s", "--skip", is_flag=True, default=False,
              help="Skip toolchain resolution.")
@click.option("-o", "--output", type=click.Path(),
              help="Write the selected toolchains to FILE as JSON.", metavar="FILE")
@click.pass_context
def resolve(ctx, requirement, skip, output):
    """
    Select toolchains matching requirements.

    Each REQUIREMENT names a toolchain type and, optionally, the
    attributes the toolchain must provide:

      $ jtoolchain resolve jdk                     # Any JDK

      $ jtoolchain resolve jdk:version=[17,21)     # A JDK version range

      $ jtoolchain resolve jdk:version=21,vendor=graalvm_community

    Toolchains declared in the registry are preferred. When no declared
    JDK matches, one is provisioned, first with JBang if the default
    vendor is requested and JBang is installed, then from the JDK
    catalog. Provisioned JDKs are extracted into the JDK directory and
    added to the registry.

    The command fails if any requirement can't be met.
    """
    requirements = [ToolchainRequirement.parse(r) for r in requirement]

    resolver = ToolchainResolver()
    context = resolver.resolve(requirements, skip=skip or None)

    for toolchain in context:
        print("{}: {}".format(toolchain.type, toolchain.jdk_home or toolchain))

    if output:
        context.export(output)
        log.verbose("Selected toolchains written to {}", output)


@cli.command(name="list")
@click.argument("type", type=str, required=False)
def _list(type=None):
    """
    List toolchains declared in the registry.

    By default, all toolchains are listed in registry order.
    If TYPE is specified, only toolchains of that type are listed.
    """
    registry = ToolchainRegistry()
    for candidate in registry.entries():
        if type and candidate.type != type:
            continue
        jdk_home = candidate.configuration.get("jdkHome")
        if jdk_home:
            print("{}  {}".format(candidate, jdk_home))
        else:
            print(candidate)


@cli.command(name="config")
@click.option("-l", "--list", is_flag=True,
              help="List all configuration keys and values.")
@click.option("-d", "--delete", is_flag=True,
              help="Delete configuration key.")
@click.option("-g", "--global", "global_", is_flag=True,
              help="List, set or get configuration keys in the global config.")
@click.option("-u", "--user", is_flag=True,
              help="List, set or get configuration keys in the user config.")
@click.argument("key", type=str, nargs=1, required=False)
@click.argument("value", type=str, nargs=1, required=False)
@click.pass_context
def _config(ctx, list, delete, global_, user, key, value):
    """
    Configure jtoolchain.

    You can query/set/replace/unset configuration keys with this command.
    Key strings are constructed from the configuration section and the
    option separated by a dot.

    Values are read from the global configuration file, the user
    configuration file and temporary configuration passed on the
    command line, in increasing order of priority. The options --global
    and --user restrict reading and writing to one of the files.
    New values are written to the user configuration by default.

    To assign a value to a key:

      $ jtoolchain config toolchain.jdksdir /opt/jdks

    To list existing keys:

      $ jtoolchain config -l

      $ jtoolchain config catalog.uri  # Display the value of a key.

    To delete an existing key:

      $ jtoolchain config -d proxy.host

    To pass temporary configuration:

      $ jtoolchain -c toolchain.skip=true resolve jdk

    """

    if delete and not key:
        raise click.UsageError("--delete requires KEY")

    if not key and not list:
        print(ctx.get_help())
        sys.exit(1)

    if global_ and user:
        raise click.UsageError("--global and --user are mutually exclusive")

    alias = None

    if global_:
        alias = "global"
    if user:
        alias = "user"

    if list:
        for section, option, value in config.items(alias):
            if option:
                print("{}.{} = {}".format(section, option, value))
            else:
                print(section)
    elif delete:
        raise_error_if(config.delete(key, alias) <= 0,
                       "No such key: {}", key)
        config.save()
    elif key:
        section, opt = config.split(key)
        if value:
            raise_error_if(opt is None, "Invalid configuration key: {}".format(key))
            config.set(section, opt, value, alias)
            try:
                config.save()
            except Exception as e:
                log.exception()
                raise_error("Failed to write configuration file: {}".format(e))
        elif opt:
            value = config.get(section, opt, alias=alias)
            raise_error_if(value is None, "No such key: {}".format(key))
            print("{} = {}".format(key, value))
        else:
            print(section)


@cli.command(name="log")
@click.option("-f", "--follow", is_flag=True, help="Display log output as it appears")
@click.option("-d", "--delete", is_flag=True, help="Delete the log files")
def _log(follow, delete):
    """
    Display the latest jtoolchain log file.

    """
    if not log.logfiles:
        print("No logs exist")
        return

    if follow:
        subprocess.call(["tail", "-f", log.logfiles[-1]])
    elif delete:
        for file in log.logfiles:
            fs.unlink(file, ignore_errors=True)
    else:
        configured_pager = config.get("jtoolchain", "pager", os.environ.get("PAGER", None))
        for pager in [configured_pager, "less", "more"]:
            if pager and shutil.which(pager):
                return subprocess.call("{1} {0}".format(log.logfiles[-1], pager), shell=True)
        with open(log.logfiles[-1]) as f:
            print(f.read())
