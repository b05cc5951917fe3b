from pydantic import BaseModel


class NowPlayingResponse(BaseModel):
    title: str = ""


class ErrorResponse(BaseModel):
    error: str
