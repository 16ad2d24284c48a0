from decimal import Decimal


class BacktesterError(Exception):
    pass


class ConfigError(BacktesterError):
    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return f"Configuration error: {self.message}"


class NilArgumentError(BacktesterError):
    def __init__(self, argument: str) -> None:
        self.argument = argument
        super().__init__(f"received nil argument: {argument}")

    def __str__(self) -> str:
        return f"Received nil argument '{self.argument}'"


class NilEventError(BacktesterError):
    def __init__(self, context: str = "") -> None:
        self.context = context
        super().__init__(f"nil event received {context}".strip())

    def __str__(self) -> str:
        context_info = f" {self.context}" if self.context else ""
        return f"Nil event received{context_info}"


class AlreadyProcessedError(BacktesterError):
    def __init__(self, exchange: str, asset: str, pair: str, offset: int) -> None:
        self.exchange = exchange
        self.asset = asset
        self.pair = pair
        self.offset = offset
        super().__init__(f"offset {offset} already processed for {exchange} {asset} {pair}")

    def __str__(self) -> str:
        return (
            f"Event already processed: {self.exchange} {self.asset} {self.pair} "
            f"offset {self.offset}"
        )


class UnsetStatisticsError(BacktesterError):
    def __init__(self) -> None:
        super().__init__("exchange asset pair statistics not setup")

    def __str__(self) -> str:
        return "Exchange asset pair statistics not setup"


class UnsetCurrencyStatisticsError(BacktesterError):
    def __init__(self, exchange: str, asset: str, pair: str, action: str) -> None:
        self.exchange = exchange
        self.asset = asset
        self.pair = pair
        self.action = action
        super().__init__(f"no statistics for {exchange} {asset} {pair} to {action}")

    def __str__(self) -> str:
        return (
            f"Currency statistics not setup for {self.exchange} {self.asset} "
            f"{self.pair} to {self.action}"
        )


class UnknownEventTypeError(BacktesterError):
    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"unknown event type received: {kind}")

    def __str__(self) -> str:
        return f"Unknown event type received: {self.kind}"


class NoFundsError(BacktesterError):
    def __init__(self, available: Decimal) -> None:
        self.available = available
        super().__init__(f"received {available} funds")

    def __str__(self) -> str:
        return f"No funds available to size order: {self.available}"


class LessThanMinimumError(BacktesterError):
    def __init__(self, sized: Decimal, minimum: Decimal) -> None:
        self.sized = sized
        self.minimum = minimum
        super().__init__(f"sized amount {sized} less than minimum {minimum}")

    def __str__(self) -> str:
        return f"Sized amount less than minimum. Sized: '{self.sized}' Minimum: '{self.minimum}'"


class CannotAllocateError(BacktesterError):
    def __init__(self, message: str, direction: str = "") -> None:
        self.message = message
        self.direction = direction
        super().__init__(message)

    def __str__(self) -> str:
        direction_info = f" (direction '{self.direction}')" if self.direction else ""
        return f"Cannot allocate{direction_info}: {self.message}"


class CalculationError(BacktesterError):
    def __init__(self, message: str, exchange: str = "", asset: str = "", pair: str = "") -> None:
        self.message = message
        self.exchange = exchange
        self.asset = asset
        self.pair = pair
        super().__init__(message)

    def __str__(self) -> str:
        target = " ".join(part for part in (self.exchange, self.asset, self.pair) if part)
        target_info = f" for {target}" if target else ""
        return f"Calculation failed{target_info}: {self.message}"


class FundingLookupError(BacktesterError):
    def __init__(self, exchange: str, asset: str, pair: str) -> None:
        self.exchange = exchange
        self.asset = asset
        self.pair = pair
        super().__init__(f"funding not found for {exchange} {asset} {pair}")

    def __str__(self) -> str:
        return f"Funding not found for {self.exchange} {self.asset} {self.pair}"
