class FrontierError(Exception):
    """Base class for world generation and simulation errors."""


class GenerationError(FrontierError):
    def __init__(self, module: str, cause: BaseException):
        self.module = module
        self.cause = cause
        super().__init__(f"module '{module}' failed: {cause!r}")


class DependencyMissing(FrontierError):
    def __init__(self, module: str, dependency: str):
        self.module = module
        self.dependency = dependency
        super().__init__(f"module '{module}' requires '{dependency}', which is not registered")


class CycleError(FrontierError):
    def __init__(self, modules):
        self.modules = sorted(modules)
        super().__init__(f"dependency cycle between modules: {', '.join(self.modules)}")


class OutOfBounds(FrontierError):
    def __init__(self, x: int, y: int):
        self.x = x
        self.y = y
        super().__init__(f"({x}, {y}) is outside the world bounds")


class InvariantViolation(FrontierError):
    def __init__(self, tag: str, detail: str):
        self.tag = tag
        self.detail = detail
        super().__init__(f"{tag}: {detail}")
