"""Dispatching calls to other contracts by name.

A proposal stores its action as a target contract id, a function name and
an ordered parameter list. The ``ExternalDispatcher`` turns that triple into
a call and either returns the callee's result or raises
``ExternalCallFailedError``; results are never discarded.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional, Sequence

from ..errors.exceptions import ExternalCallFailedError, ValidationError
from ..logging import get_logger
from .contract import is_contract_function

if TYPE_CHECKING:
    from .contract import Contract

logger = get_logger(__name__)


class ExternalDispatcher(ABC):
    """Invokes a named function on a target contract."""

    @abstractmethod
    def invoke(self, target: str, function: str, parameters: Sequence[Any]) -> Any:
        """Call ``function`` on ``target`` with ``parameters``."""
        pass


class ContractRegistry(ExternalDispatcher):
    """Contracts deployed in one environment, addressable by id."""

    def __init__(self):
        self._contracts: Dict[str, "Contract"] = {}

    def register(self, contract: "Contract") -> None:
        if contract.contract_id in self._contracts:
            raise ValidationError(
                f"Contract {contract.contract_id} already deployed",
                field="contract_id",
                value=contract.contract_id,
            )
        self._contracts[contract.contract_id] = contract

    def get(self, contract_id: str) -> Optional["Contract"]:
        return self._contracts.get(contract_id)

    def __contains__(self, contract_id: str) -> bool:
        return contract_id in self._contracts

    def __iter__(self) -> Iterator["Contract"]:
        return iter(self._contracts.values())

    def __len__(self) -> int:
        return len(self._contracts)

    def invoke(self, target: str, function: str, parameters: Sequence[Any]) -> Any:
        contract = self._contracts.get(target)
        if contract is None:
            raise ExternalCallFailedError(
                f"No contract deployed at {target}", target=target, function=function
            )

        handler = getattr(contract, function, None)
        if not is_contract_function(handler):
            raise ExternalCallFailedError(
                f"Contract {target} does not export {function}",
                target=target,
                function=function,
            )

        try:
            result = handler(*parameters)
        except Exception as e:
            logger.warning(f"Call to {target}.{function} failed: {e}")
            raise ExternalCallFailedError(
                f"Call to {target}.{function} failed: {e}",
                target=target,
                function=function,
                cause=e,
            ) from e

        logger.debug(f"Call to {target}.{function} returned {result!r}")
        return result
