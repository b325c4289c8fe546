from hostel_outing.schemas.common.base import BaseInputSchema, BaseSchema

__all__ = ["BaseSchema", "BaseInputSchema"]
