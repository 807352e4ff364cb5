"""
Gateway registry: which gateway serves a tenant.

Built once at process start from the constructed gateway instances and the
tenants' gateway bindings, then passed to callers. Resolution is pure: it
reads the configuration snapshot and never does I/O.

Selection for a tenant:
  1. Keep bindings whose purpose matches and whose currencies include the
     requested currency (a binding without currencies accepts any)
  2. No binding left → NO_GATEWAY_CONFIGURED
  3. Exactly one → that gateway
  4. Several → the single one flagged ``default``, else AMBIGUOUS_GATEWAY
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, RootModel, field_validator

from paygate.engine.errors import GatewayError
from paygate.gateways.base import PaymentGateway
from paygate.models.enums import ErrorKind

logger = logging.getLogger("paygate.registry")


class GatewayBinding(BaseModel):
    """One gateway a tenant may use."""

    model_config = ConfigDict(frozen=True)

    gateway: str
    currencies: Optional[frozenset[str]] = None  # None: any currency
    purpose: str = "purchase"
    default: bool = False

    @field_validator("currencies")
    @classmethod
    def _upper(cls, value: Optional[frozenset[str]]) -> Optional[frozenset[str]]:
        return frozenset(c.upper() for c in value) if value is not None else None

    def accepts(self, currency: Optional[str], purpose: str) -> bool:
        if self.purpose != purpose:
            return False
        return currency is None or self.currencies is None or currency.upper() in self.currencies


class TenantGatewayConfig(RootModel[dict[str, tuple[GatewayBinding, ...]]]):
    """``{tenant_id: [binding, ...]}`` as supplied by tenant configuration."""

    def bindings(self, tenant_id: str) -> tuple[GatewayBinding, ...]:
        return self.root.get(tenant_id, ())


class GatewayRegistry:
    """Resolves the gateway implementation configured for a tenant."""

    def __init__(
        self,
        gateways: Iterable[PaymentGateway] = (),
        config: Union[TenantGatewayConfig, Mapping[str, Any], None] = None,
    ):
        self._gateways: dict[str, PaymentGateway] = {}
        for gateway in gateways:
            self.register(gateway)
        if config is None:
            config = TenantGatewayConfig({})
        elif not isinstance(config, TenantGatewayConfig):
            config = TenantGatewayConfig.model_validate(config)
        self._config = config
        self._check_bindings()

    def register(self, gateway: PaymentGateway) -> None:
        if gateway.name in self._gateways:
            raise ValueError(f"Gateway already registered: {gateway.name}")
        self._gateways[gateway.name] = gateway

    def _check_bindings(self) -> None:
        for tenant_id, bindings in self._config.root.items():
            for binding in bindings:
                if binding.gateway not in self._gateways:
                    raise ValueError(f"Tenant {tenant_id} is bound to unknown gateway {binding.gateway!r}")

    def names(self) -> list[str]:
        return sorted(self._gateways)

    def get(self, name: str) -> PaymentGateway:
        """Gateway by provider name, for routing inbound notifications."""
        try:
            return self._gateways[name]
        except KeyError:
            raise GatewayError(ErrorKind.NO_GATEWAY_CONFIGURED, f"No gateway named {name!r}") from None

    def resolve(
        self,
        tenant_id: str,
        currency: Optional[str] = None,
        purpose: str = "purchase",
    ) -> PaymentGateway:
        """
        Select the gateway for a tenant.

        Args:
            tenant_id: Seller/store account.
            currency: Narrow to gateways accepting this currency.
            purpose: Binding purpose, "purchase" unless configured otherwise.

        Raises:
            GatewayError: NO_GATEWAY_CONFIGURED or AMBIGUOUS_GATEWAY.
        """
        bindings = self._config.bindings(tenant_id)
        if not bindings:
            raise GatewayError(ErrorKind.NO_GATEWAY_CONFIGURED, f"Tenant {tenant_id} has no gateway")

        candidates = [b for b in bindings if b.accepts(currency, purpose)]
        if not candidates:
            raise GatewayError(
                ErrorKind.NO_GATEWAY_CONFIGURED,
                f"Tenant {tenant_id} has no {purpose} gateway for {currency or 'any currency'}",
            )

        if len(candidates) > 1:
            defaults = [b for b in candidates if b.default]
            if len(defaults) != 1:
                names = ", ".join(b.gateway for b in candidates)
                raise GatewayError(
                    ErrorKind.AMBIGUOUS_GATEWAY,
                    f"Tenant {tenant_id} has {len(candidates)} candidates ({names}) and no single default",
                )
            candidates = defaults

        chosen = candidates[0].gateway
        logger.debug("Tenant %s → gateway %s (%s, %s)", tenant_id, chosen, currency, purpose)
        return self._gateways[chosen]
