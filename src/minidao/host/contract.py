"""Base class for contracts hosted by an ``Environment``.

Public contract entry points are marked with ``contract_function``. Each call
of a marked method runs inside its own call frame: its store writes commit
only if the method returns normally, and the frame records which identities
authorized it.
"""

import functools
import inspect
from typing import TYPE_CHECKING, Any, Callable, List, Optional, Tuple
from uuid import uuid4

from .invocation import Invocation

if TYPE_CHECKING:
    from .env import Environment

CONTRACT_FUNCTION_ATTR = "__contract_function__"


def _bind_args(signature: inspect.Signature, instance: Any, args: tuple, kwargs: dict) -> Tuple[Any, ...]:
    bound = signature.bind(instance, *args, **kwargs)
    bound.apply_defaults()
    return tuple(bound.arguments.values())[1:]


def contract_function(func: Callable) -> Callable:
    """Expose ``func`` as a contract entry point."""
    signature = inspect.signature(func)

    @functools.wraps(func)
    def wrapper(self: "Contract", *args, **kwargs):
        invocation = Invocation(
            self.contract_id, func.__name__, _bind_args(signature, self, args, kwargs)
        )
        with self.env.call(invocation):
            return func(self, *args, **kwargs)

    setattr(wrapper, CONTRACT_FUNCTION_ATTR, True)
    wrapper.__signature_for_invocation__ = signature
    return wrapper


def is_contract_function(obj: Any) -> bool:
    return callable(obj) and getattr(obj, CONTRACT_FUNCTION_ATTR, False)


class Contract:
    """A contract deployed into an environment under ``contract_id``."""

    def __init__(self, env: "Environment", contract_id: Optional[str] = None):
        self.env = env
        self.contract_id = contract_id or f"C{uuid4().hex[:20].upper()}"
        self.storage = env.storage(self.contract_id)
        env.deploy(self)

    @classmethod
    def exported_functions(cls) -> List[str]:
        """Names of the contract's entry points."""
        return sorted(
            name
            for name, member in inspect.getmembers(cls)
            if is_contract_function(member)
        )

    def invocation(self, function: str, *args, **kwargs) -> Invocation:
        """Build the ``Invocation`` a call of ``function`` will run as.

        Clients use this to sign exactly what the contract will ask them to
        authorize.
        """
        method = getattr(type(self), function, None)
        if not is_contract_function(method):
            raise AttributeError(f"{type(self).__name__} does not export {function}")
        signature = method.__signature_for_invocation__
        return Invocation(self.contract_id, function, _bind_args(signature, self, args, kwargs))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.contract_id!r})"
