# leafsync/core/container.py

from typing import TypeVar, Type, Callable, Set
import inspect

from .logging import SyncLogger, log_with_context, DEBUG, ERROR

T = TypeVar('T')

class SyncContainer:
    def __init__(self, config):
        self._config = config
        self._services = {}  # service_type -> (implementation, factory)
        self._instances = {}  # service_type -> instance
        self._resolution_stack: Set[Type] = set()

        self._logger = SyncLogger.get_logger('core.container')

    @property
    def config(self):
        return self._config

    def register_singleton(self, interface: Type[T], implementation: Type[T]) -> 'SyncContainer':
        """Register a service that gets created once and reused"""
        self._services[interface] = (implementation, None)
        return self

    def register_factory(self, interface: Type[T], factory_func: Callable[['SyncContainer'], T]) -> 'SyncContainer':
        """Register a factory function (treated as singleton)"""
        self._services[interface] = (None, factory_func)
        return self

    def register_instance(self, interface: Type[T], instance: T) -> 'SyncContainer':
        self._services[interface] = (type(instance), None)
        self._instances[interface] = instance
        return self

    def get(self, service_type: Type[T]) -> T:
        """Get service instance, creating if necessary"""
        service_name = service_type.__name__

        if service_type in self._resolution_stack:
            circular_path = " -> ".join([t.__name__ for t in self._resolution_stack]) + f" -> {service_name}"
            raise ValueError(f"Circular dependency detected: {circular_path}")

        if service_type not in self._services:
            raise ValueError(f"Service {service_name} not registered")

        if service_type in self._instances:
            return self._instances[service_type]

        implementation, factory = self._services[service_type]
        self._resolution_stack.add(service_type)

        try:
            if factory:
                instance = factory(self)
            else:
                instance = self._create_instance(implementation)

            self._instances[service_type] = instance
            log_with_context(self._logger, DEBUG, f"Service {service_name} created")
            return instance

        except Exception as e:
            log_with_context(self._logger, ERROR, f"Failed to create service {service_name}",
                             error=str(e),
                             exception_type=type(e).__name__)
            raise
        finally:
            self._resolution_stack.discard(service_type)

    def _create_instance(self, implementation_type: Type):
        """Create instance with constructor injection by type annotation"""
        sig = inspect.signature(implementation_type.__init__)
        kwargs = {}

        for param_name, param in sig.parameters.items():
            if param_name == 'self' or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue

            param_type = param.annotation
            if param_type is not inspect.Parameter.empty and param_type in self._services:
                kwargs[param_name] = self.get(param_type)
            elif param_name == 'config':
                kwargs[param_name] = self._config
            elif param.default is inspect.Parameter.empty:
                raise ValueError(
                    f"Cannot resolve parameter '{param_name}' of {implementation_type.__name__}"
                )

        return implementation_type(**kwargs)
