"""
Database Schemas

Video Rental App Schemas using Pydantic models.
Each Pydantic model maps to a MongoDB collection using the lowercase class name.
- Customer -> "customer"
- Genre -> "genre"
- Movie -> "movie"
- User -> "user"
- Rental -> "rental"

Request payloads accepted by the API live at the bottom of this module.
"""

from datetime import datetime, timezone
from typing import Annotated, Optional

from bson import ObjectId
from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, StringConstraints


def _check_object_id(value: str) -> str:
    if not ObjectId.is_valid(value):
        raise ValueError("must be a valid id")
    return value


ObjectIdStr = Annotated[str, AfterValidator(_check_object_id)]
Title = Annotated[str, StringConstraints(strip_whitespace=True, min_length=5, max_length=255)]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Snapshot(BaseModel):
    """Embedded copy of another record, frozen when the parent is written."""
    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    id: ObjectId = Field(..., alias="_id")


class Customer(BaseModel):
    """
    Customers who rent movies
    Collection: "customer"
    """
    name: str = Field(..., min_length=2, max_length=50)
    phone: str = Field(..., min_length=5, max_length=50)
    isGold: bool = Field(False, description="Gold members")


class Genre(BaseModel):
    """
    Movie genres
    Collection: "genre"
    """
    name: str = Field(..., min_length=5, max_length=50)


class GenreSnapshot(Snapshot):
    name: str


class Movie(BaseModel):
    """
    Movies in the catalogue
    Collection: "movie"
    """
    title: Title
    genre: GenreSnapshot = Field(..., description="Copy of the genre at write time")
    numberInStock: int = Field(..., ge=0, le=255)
    dailyRentalRate: float = Field(..., ge=0, le=255)


class User(BaseModel):
    """
    API users
    Collection: "user"
    """
    name: str = Field(..., min_length=5, max_length=50)
    email: EmailStr = Field(..., description="Unique login email")
    password: str = Field(..., description="bcrypt hash of the password")
    isAdmin: bool = Field(False)


class CustomerSnapshot(Snapshot):
    name: str
    phone: str
    isGold: bool = False


class MovieSnapshot(Snapshot):
    title: str
    dailyRentalRate: float


class Rental(BaseModel):
    """
    Rental records, one per customer/movie checkout
    Collection: "rental"
    """
    customer: CustomerSnapshot
    movie: MovieSnapshot
    dateOut: datetime = Field(default_factory=utcnow, description="Checkout time (UTC)")
    dateReturned: Optional[datetime] = Field(None, description="Return time (UTC)")
    rentalCost: Optional[float] = Field(None, ge=0)


# Request payloads

class CustomerRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    phone: str = Field(..., min_length=5, max_length=50)
    isGold: bool = False


class GenreRequest(BaseModel):
    name: str = Field(..., min_length=5, max_length=50)


class MovieRequest(BaseModel):
    title: Title
    genreId: ObjectIdStr
    numberInStock: int = Field(..., ge=0, le=255)
    dailyRentalRate: float = Field(..., ge=0, le=255)


class UserRequest(BaseModel):
    name: str = Field(..., min_length=5, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=5, max_length=1024)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=5, max_length=1024)


class RentalRequest(BaseModel):
    customerId: ObjectIdStr
    movieId: ObjectIdStr


class ReturnRequest(RentalRequest):
    pass
