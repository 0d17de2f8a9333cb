# storyforest/models.py
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool
from typing_extensions import Literal


Rating = Literal["up", "down"]


class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=80)
    password: str = Field(min_length=1)
    email: str = Field(min_length=1)
    name: str = Field(min_length=1)
    is_public: bool = True


class LoginRequest(BaseModel):
    username: str
    password: str


class PrivacyUpdate(BaseModel):
    is_public: StrictBool


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    name: str
    is_public: bool


class PublicUser(BaseModel):
    """What other parents see of an account: never the email or password."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    name: str


class ChildCreate(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    birth_month: int = Field(ge=1, le=12)
    birth_year: int = Field(ge=1900)


class ChildWithStats(BaseModel):
    id: int
    name: str
    birth_month: int
    birth_year: int
    user_id: int
    age: int
    library_count: int = 0
    wishlist_count: int = 0
    # Filled in on discovery listings so visitors know whose library it is
    owner_name: Optional[str] = None


class BookCreate(BaseModel):
    title: str = Field(min_length=1)
    author: str = Field(min_length=1)
    cover_url: Optional[str] = None
    isbn: Optional[str] = Field(default=None, max_length=32)
    olid: Optional[str] = Field(default=None, max_length=32)
    google_id: Optional[str] = Field(default=None, max_length=32)
    age_range: Optional[str] = Field(default=None, max_length=32)


class LibraryAddRequest(BookCreate):
    rating: Optional[Rating] = None


class RatingRequest(BaseModel):
    # Required, but may be null to clear the rating
    rating: Optional[Rating]


class BookWithDetails(BaseModel):
    id: int
    title: str
    author: str
    cover_url: Optional[str] = None
    isbn: Optional[str] = None
    olid: Optional[str] = None
    google_id: Optional[str] = None
    age_range: Optional[str] = None
    in_library: bool = False
    in_wishlist: bool = False
    rating: Optional[Rating] = None


class AddBookResponse(BaseModel):
    success: bool = True
    book_id: int


class SuccessResponse(BaseModel):
    success: bool = True
