from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from tmx_generator.generator import BuildStage


class TMXGeneratorError(Exception):
    """Base of all failures a map build can end with.

    ``stage`` is the build stage the error was raised in; the generator fills it in
    when the raising code did not know it.
    """

    def __init__(self, message: str, stage: Optional['BuildStage'] = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage is not None:
            return f"{self.stage.name}: {self.message}"
        return self.message


class MissingDestination(TMXGeneratorError):
    def __init__(self, stage: Optional['BuildStage'] = None) -> None:
        super().__init__("Provider did not supply a path for the map file", stage)


class DuplicateTileset(TMXGeneratorError):
    def __init__(self, tileset_name: str, stage: Optional['BuildStage'] = None) -> None:
        super().__init__(f"Tileset '{tileset_name}' is listed more than once", stage)
        self.tileset_name = tileset_name


class UnknownTileset(TMXGeneratorError):
    def __init__(self, tileset_name: str, stage: Optional['BuildStage'] = None) -> None:
        super().__init__(f"Tileset '{tileset_name}' is not registered", stage)
        self.tileset_name = tileset_name


class UnboundTileset(TMXGeneratorError):
    def __init__(self, layer_name: str, tileset_name: str, stage: Optional['BuildStage'] = None) -> None:
        super().__init__(f"Layer '{layer_name}' references tileset '{tileset_name}' which was never registered", stage)
        self.layer_name = layer_name
        self.tileset_name = tileset_name


class LayerBoundsError(TMXGeneratorError):
    def __init__(self, layer_name: str, width: int, height: int, reason: str, stage: Optional['BuildStage'] = None) -> None:
        super().__init__(f"Layer '{layer_name}' has invalid size {width}x{height}: {reason}", stage)
        self.layer_name = layer_name
        self.width = width
        self.height = height


class InvalidProviderData(TMXGeneratorError):
    """Raised when a record returned by the provider misses a key or holds a value of the wrong kind."""


class InvalidMapAttribute(InvalidProviderData):
    pass


class SerializationFailure(TMXGeneratorError):
    pass
