class ToolchainError(Exception):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)


class MisconfiguredToolchainError(ToolchainError):
    """ A toolchain requirement or registry entry is malformed. """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)


class TransportError(ToolchainError):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)


class SubprocessError(ToolchainError):
    def __init__(self, what, stdout=[], stderr=[], returncode=None, *args, **kwargs):
        super().__init__(what, *args, **kwargs)
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode


class RegistryWriteError(ToolchainError):
    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)


class ResolutionError(ToolchainError):
    def __init__(self, what, requirements=None, *args, **kwargs):
        super().__init__(what, *args, **kwargs)
        self.requirements = requirements or []


def raise_error(msg, *args, **kwargs):
    raise ToolchainError(msg.format(*args, **kwargs))


def raise_error_if(condition, *args, **kwargs):
    if condition:
        raise_error(*args, **kwargs)


def raise_misconfigured(msg, *args, **kwargs):
    raise MisconfiguredToolchainError(msg.format(*args, **kwargs))


def raise_misconfigured_if(condition, *args, **kwargs):
    if condition:
        raise_misconfigured(*args, **kwargs)


def raise_transport_error(msg, *args, **kwargs):
    raise TransportError(msg.format(*args, **kwargs))


def raise_transport_error_if(condition, *args, **kwargs):
    if condition:
        raise_transport_error(*args, **kwargs)

