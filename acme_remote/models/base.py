from pydantic import BaseModel, ConfigDict


class RemoteModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        extra='ignore'
    )
