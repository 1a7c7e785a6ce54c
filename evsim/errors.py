class SimulatorError(Exception):
    """Base for every failure that is answered with a rejection reply."""


class MalformedEnvelope(SimulatorError):
    """The inbound frame is not a JSON object."""


class UnknownCommand(SimulatorError):
    pass


class ValidationError(SimulatorError):
    """A required field is missing or has the wrong type."""


class StateConflict(SimulatorError):
    """The command is valid but not applicable to the current device state."""


class DuplicateRfid(StateConflict):
    pass


class RfidNotFound(StateConflict):
    pass
