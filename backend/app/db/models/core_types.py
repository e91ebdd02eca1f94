import enum

# Valeurs "wire" = celles des documents historiques (ne pas renommer)


class RequirementState(str, enum.Enum):
    pending = "pendiente"
    approved = "aprobado"
    in_progress = "en_proceso"
    completed = "completado"
    cancelled = "cancelado"


class Priority(str, enum.Enum):
    low = "baja"
    normal = "normal"
    high = "alta"
    urgent = "urgente"


class RequirementOrigin(str, enum.Enum):
    pending_sale = "venta_pendiente"
    minimum_stock = "stock_minimo"
    manual = "manual"


class RequesterType(str, enum.Enum):
    customer = "cliente"
    internal = "interno"
    minimum_stock = "stock_minimo"


class AssignmentState(str, enum.Enum):
    pending = "pendiente"
    purchasing = "comprando"
    purchased = "comprado"
    in_us_warehouse = "en_almacen_usa"
    in_transit = "en_transito"
    received = "recibido"
    cancelled = "cancelado"


TERMINAL_REQUIREMENT_STATES = {
    RequirementState.completed,
    RequirementState.cancelled,
}
