from pydantic import BaseModel
from typing import List


class Tag(BaseModel):
    name: str
    value: str


class Track(BaseModel):
    uri: str
    name: str = ""
    length: int = -1
    tags: List[Tag] = []


class Playlist(BaseModel):
    tracks: List[Track] = []
