import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from bson import ObjectId
from fastapi import Depends, FastAPI, HTTPException, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import AUTH_HEADER, check_password, hash_password, issue_token, require_admin, require_auth
from config import Settings, get_settings
from database import (
    create_document,
    delete_document,
    ensure_indexes,
    find_document,
    get_db,
    get_documents,
    to_object_id,
    update_document,
)
from errors import register_error_handlers
from logging_setup import configure_logging
from rentals import checkout_rental, return_rental
from schemas import (
    Customer as CustomerSchema,
    CustomerRequest,
    Genre as GenreSchema,
    GenreRequest,
    GenreSnapshot,
    LoginRequest,
    Movie as MovieSchema,
    MovieRequest,
    RentalRequest,
    ReturnRequest,
    User as UserSchema,
    UserRequest,
)

logger = logging.getLogger(__name__)


# Utilities to serialize MongoDB documents
def serialize_value(v):
    if isinstance(v, ObjectId):
        return str(v)
    if isinstance(v, datetime):
        if v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc).isoformat()
    if isinstance(v, dict):
        return serialize_doc(v)
    if isinstance(v, list):
        return [serialize_value(i) for i in v]
    return v


def serialize_doc(doc: dict):
    return {k: serialize_value(v) for k, v in doc.items()}


def serialize_user(doc: dict):
    return serialize_doc({k: v for k, v in doc.items() if k != "password"})


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings)
    settings.check()
    if settings.database_url and settings.database_name:
        ensure_indexes(get_db(settings))
    logger.info("Vidly API started")
    yield


app = FastAPI(title="Vidly API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[AUTH_HEADER],
)
app.add_middleware(GZipMiddleware)

register_error_handlers(app)


@app.get("/")
def read_root():
    return {"message": "Welcome to the Vidly API."}


# Customers Endpoints
@app.get("/api/customers")
def list_customers(db: Database = Depends(get_db)):
    customers = get_documents(db, "customer", sort=[("name", 1)])
    return [serialize_doc(c) for c in customers]


@app.get("/api/customers/{customer_id}")
def get_customer(customer_id: str, db: Database = Depends(get_db)):
    customer = find_document(db, "customer", customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="The customer with the given ID was not found.")
    return serialize_doc(customer)


@app.post("/api/customers")
def add_customer(payload: CustomerRequest, identity: dict = Depends(require_auth), db: Database = Depends(get_db)):
    customer = CustomerSchema(**payload.model_dump())
    customer_id = create_document(db, "customer", customer)
    logger.info("Customer %s created", customer_id)
    return serialize_doc(find_document(db, "customer", customer_id))


@app.put("/api/customers/{customer_id}")
def update_customer(
    customer_id: str,
    payload: CustomerRequest,
    identity: dict = Depends(require_auth),
    db: Database = Depends(get_db),
):
    customer = CustomerSchema(**payload.model_dump())
    updated = update_document(db, "customer", customer_id, customer.model_dump())
    if not updated:
        raise HTTPException(status_code=404, detail="The customer with the given ID was not found.")
    logger.info("Customer %s updated", customer_id)
    return serialize_doc(updated)


@app.delete("/api/customers/{customer_id}")
def delete_customer(customer_id: str, identity: dict = Depends(require_admin), db: Database = Depends(get_db)):
    deleted = delete_document(db, "customer", customer_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="The customer with the given ID was not found.")
    logger.info("Customer %s deleted by %s", customer_id, identity.get("_id"))
    return serialize_doc(deleted)


# Genres Endpoints
@app.get("/api/genres")
def list_genres(db: Database = Depends(get_db)):
    genres = get_documents(db, "genre", sort=[("name", 1)])
    return [serialize_doc(g) for g in genres]


@app.get("/api/genres/{genre_id}")
def get_genre(genre_id: str, db: Database = Depends(get_db)):
    genre = find_document(db, "genre", genre_id)
    if not genre:
        raise HTTPException(status_code=404, detail="The genre with the given ID was not found.")
    return serialize_doc(genre)


@app.post("/api/genres")
def add_genre(payload: GenreRequest, identity: dict = Depends(require_auth), db: Database = Depends(get_db)):
    genre_id = create_document(db, "genre", GenreSchema(name=payload.name))
    logger.info("Genre %s created", genre_id)
    return serialize_doc(find_document(db, "genre", genre_id))


@app.put("/api/genres/{genre_id}")
def update_genre(
    genre_id: str,
    payload: GenreRequest,
    identity: dict = Depends(require_auth),
    db: Database = Depends(get_db),
):
    updated = update_document(db, "genre", genre_id, GenreSchema(name=payload.name).model_dump())
    if not updated:
        raise HTTPException(status_code=404, detail="The genre with the given ID was not found.")
    logger.info("Genre %s updated", genre_id)
    return serialize_doc(updated)


@app.delete("/api/genres/{genre_id}")
def delete_genre(genre_id: str, identity: dict = Depends(require_admin), db: Database = Depends(get_db)):
    deleted = delete_document(db, "genre", genre_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="The genre with the given ID was not found.")
    logger.info("Genre %s deleted by %s", genre_id, identity.get("_id"))
    return serialize_doc(deleted)


# Movies Endpoints
def resolve_genre(db: Database, genre_id: str) -> GenreSnapshot:
    genre = find_document(db, "genre", genre_id)
    if not genre:
        raise HTTPException(status_code=400, detail="Invalid genre.")
    return GenreSnapshot(_id=genre["_id"], name=genre["name"])


def build_movie(db: Database, payload: MovieRequest) -> MovieSchema:
    return MovieSchema(
        title=payload.title,
        genre=resolve_genre(db, payload.genreId),
        numberInStock=payload.numberInStock,
        dailyRentalRate=payload.dailyRentalRate,
    )


@app.get("/api/movies")
def list_movies(db: Database = Depends(get_db)):
    movies = get_documents(db, "movie", sort=[("title", 1)])
    return [serialize_doc(m) for m in movies]


@app.get("/api/movies/{movie_id}")
def get_movie(movie_id: str, db: Database = Depends(get_db)):
    movie = find_document(db, "movie", movie_id)
    if not movie:
        raise HTTPException(status_code=404, detail="The movie with the given ID was not found.")
    return serialize_doc(movie)


@app.post("/api/movies")
def add_movie(payload: MovieRequest, identity: dict = Depends(require_auth), db: Database = Depends(get_db)):
    movie_id = create_document(db, "movie", build_movie(db, payload))
    logger.info("Movie %s created", movie_id)
    return serialize_doc(find_document(db, "movie", movie_id))


@app.put("/api/movies/{movie_id}")
def update_movie(
    movie_id: str,
    payload: MovieRequest,
    identity: dict = Depends(require_auth),
    db: Database = Depends(get_db),
):
    movie = build_movie(db, payload)
    updated = update_document(db, "movie", movie_id, movie.model_dump(by_alias=True))
    if not updated:
        raise HTTPException(status_code=404, detail="The movie with the given ID was not found.")
    logger.info("Movie %s updated", movie_id)
    return serialize_doc(updated)


@app.delete("/api/movies/{movie_id}")
def delete_movie(movie_id: str, identity: dict = Depends(require_admin), db: Database = Depends(get_db)):
    deleted = delete_document(db, "movie", movie_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="The movie with the given ID was not found.")
    logger.info("Movie %s deleted by %s", movie_id, identity.get("_id"))
    return serialize_doc(deleted)


# Users Endpoints
@app.get("/api/users")
def list_users(db: Database = Depends(get_db)):
    users = get_documents(db, "user", sort=[("name", 1)])
    return [serialize_user(u) for u in users]


@app.get("/api/users/me")
def get_current_user(identity: dict = Depends(require_auth), db: Database = Depends(get_db)):
    user = find_document(db, "user", identity.get("_id"))
    if not user:
        raise HTTPException(status_code=404, detail="The user with the given ID was not found.")
    return serialize_user(user)


@app.get("/api/users/{user_id}")
def get_user(user_id: str, db: Database = Depends(get_db)):
    user = find_document(db, "user", user_id)
    if not user:
        raise HTTPException(status_code=404, detail="The user with the given ID was not found.")
    return serialize_user(user)


@app.post("/api/users")
def add_user(
    payload: UserRequest,
    response: Response,
    identity: dict = Depends(require_auth),
    db: Database = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    if db["user"].find_one({"email": payload.email}):
        raise HTTPException(status_code=400, detail="User already registered.")

    user = UserSchema(name=payload.name, email=payload.email, password=hash_password(payload.password))
    try:
        user_id = create_document(db, "user", user)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="User already registered.")

    created = find_document(db, "user", user_id)
    response.headers[AUTH_HEADER] = issue_token(user_id, created.get("isAdmin", False), settings)
    logger.info("User %s registered", user_id)
    return serialize_user(created)


@app.put("/api/users/{user_id}")
def update_user(
    user_id: str,
    payload: UserRequest,
    identity: dict = Depends(require_auth),
    db: Database = Depends(get_db),
):
    oid = to_object_id(user_id)
    if oid is None:
        raise HTTPException(status_code=404, detail="The user with the given ID was not found.")
    if db["user"].find_one({"email": payload.email, "_id": {"$ne": oid}}):
        raise HTTPException(status_code=400, detail="Email already in use.")

    fields = {"name": payload.name, "email": payload.email, "password": hash_password(payload.password)}
    try:
        updated = update_document(db, "user", oid, fields)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Email already in use.")
    if not updated:
        raise HTTPException(status_code=404, detail="The user with the given ID was not found.")
    logger.info("User %s updated", user_id)
    return serialize_user(updated)


@app.delete("/api/users/{user_id}")
def delete_user(user_id: str, identity: dict = Depends(require_admin), db: Database = Depends(get_db)):
    deleted = delete_document(db, "user", user_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="The user with the given ID was not found.")
    logger.info("User %s deleted by %s", user_id, identity.get("_id"))
    return serialize_user(deleted)


# Login
@app.post("/api/auth")
def login(payload: LoginRequest, db: Database = Depends(get_db), settings: Settings = Depends(get_settings)):
    user = db["user"].find_one({"email": payload.email})
    if not user or not check_password(payload.password, user["password"]):
        logger.warning("Failed login for %s", payload.email)
        raise HTTPException(status_code=400, detail="Invalid email or password.")
    return issue_token(str(user["_id"]), user.get("isAdmin", False), settings)


# Rentals Endpoints
@app.get("/api/rentals")
def list_rentals(db: Database = Depends(get_db)):
    rentals = get_documents(db, "rental", sort=[("dateOut", -1)])
    return [serialize_doc(r) for r in rentals]


@app.get("/api/rentals/{rental_id}")
def get_rental(rental_id: str, db: Database = Depends(get_db)):
    rental = find_document(db, "rental", rental_id)
    if not rental:
        raise HTTPException(status_code=404, detail="The rental with the given ID was not found.")
    return serialize_doc(rental)


@app.post("/api/rentals")
def start_rental(payload: RentalRequest, identity: dict = Depends(require_auth), db: Database = Depends(get_db)):
    rental = checkout_rental(db, payload.customerId, payload.movieId)
    return serialize_doc(rental)


# Returns
@app.post("/api/returns")
def process_return(payload: ReturnRequest, identity: dict = Depends(require_auth), db: Database = Depends(get_db)):
    rental = return_rental(db, payload.customerId, payload.movieId)
    return serialize_doc(rental)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
