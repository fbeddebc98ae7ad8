from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Common config: build from ORM rows or attribute objects, accept field names or aliases"""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True
    )
