"""
Erreurs métier des requerimientos.

Levées de façon synchrone par les services, jamais rejouées automatiquement.
Le mapping HTTP est fait une seule fois dans backend.app.main.
"""

from __future__ import annotations


class RequirementError(Exception):
    """Base de toutes les erreurs métier du moteur."""


class ValidationError(RequirementError):
    """Entrée mal formée (quantité <= 0, produit en double...)."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class NotFoundError(RequirementError):
    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = resource
        if resource_id is not None:
            msg += f" {resource_id}"
        super().__init__(msg + " not found")


class InvalidStateError(RequirementError):
    """Opération interdite dans l'état courant."""


class InsufficientQuantityError(RequirementError):
    def __init__(self, product_id: str, sku: str, pending: int, requested: int) -> None:
        self.product_id = product_id
        self.pending = pending
        self.requested = requested
        super().__init__(
            f"Not enough pending quantity for {sku} "
            f"(pending={pending}, requested={requested})"
        )


class ConflictError(RequirementError):
    """Version du document changée entre lecture et écriture."""

    def __init__(self, requirement_id: str, expected_version: int) -> None:
        self.requirement_id = requirement_id
        self.expected_version = expected_version
        super().__init__(
            f"Requirement {requirement_id} was modified concurrently "
            f"(expected version {expected_version})"
        )
