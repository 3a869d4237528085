"""
Rental checkout and return.

A rental is open until it is returned; returning it freezes the cost using
the daily rate copied into the rental at checkout.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from bson import ObjectId
from fastapi import HTTPException
from pymongo import ReturnDocument
from pymongo.database import Database

from database import create_document, find_document
from schemas import CustomerSnapshot, MovieSnapshot, Rental, utcnow

logger = logging.getLogger(__name__)

DAY = timedelta(days=1)
# Remainders up to this long are not billed as an extra day.
RETURN_GRACE = timedelta(minutes=1)


def _as_utc(value: datetime) -> datetime:
    # pymongo hands back naive datetimes that are already UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def rental_days(date_out: datetime, date_returned: datetime) -> int:
    """Whole days between checkout and return, rounding a partial day up."""
    duration = _as_utc(date_returned) - _as_utc(date_out)
    if duration <= timedelta(0):
        return 0
    days, remainder = divmod(duration, DAY)
    return days + (1 if remainder > RETURN_GRACE else 0)


def rental_cost(rental: dict, date_returned: datetime) -> float:
    return rental_days(rental["dateOut"], date_returned) * rental["movie"]["dailyRentalRate"]


def checkout_rental(db: Database, customer_id: str, movie_id: str) -> dict:
    customer = find_document(db, "customer", customer_id)
    if not customer:
        raise HTTPException(status_code=400, detail="Invalid customer.")

    movie = find_document(db, "movie", movie_id)
    if not movie:
        raise HTTPException(status_code=400, detail="Invalid movie.")

    # Take one copy out of stock
    taken = db["movie"].update_one(
        {"_id": movie["_id"], "numberInStock": {"$gt": 0}},
        {"$inc": {"numberInStock": -1}},
    )
    if taken.modified_count == 0:
        raise HTTPException(status_code=400, detail="Movie not in stock.")

    rental = Rental(
        customer=CustomerSnapshot(
            _id=customer["_id"],
            name=customer["name"],
            phone=customer["phone"],
            isGold=customer.get("isGold", False),
        ),
        movie=MovieSnapshot(
            _id=movie["_id"],
            title=movie["title"],
            dailyRentalRate=movie["dailyRentalRate"],
        ),
    )
    rental_id = create_document(db, "rental", rental)
    logger.info("Rental %s opened for customer %s, movie %s", rental_id, customer_id, movie_id)
    return db["rental"].find_one({"_id": ObjectId(rental_id)})


def find_rental_for_return(db: Database, customer_id: str, movie_id: str) -> Optional[dict]:
    query = {"customer._id": ObjectId(customer_id), "movie._id": ObjectId(movie_id)}
    open_rental = db["rental"].find_one({**query, "dateReturned": None})
    if open_rental:
        return open_rental
    return db["rental"].find_one(query)


def return_rental(db: Database, customer_id: str, movie_id: str) -> dict:
    rental = find_rental_for_return(db, customer_id, movie_id)
    if not rental:
        raise HTTPException(status_code=404, detail="Rental not found.")
    if rental.get("dateReturned"):
        raise HTTPException(status_code=400, detail="Return already processed.")

    date_returned = utcnow()
    updated = db["rental"].find_one_and_update(
        {"_id": rental["_id"], "dateReturned": None},
        {"$set": {"dateReturned": date_returned, "rentalCost": rental_cost(rental, date_returned)}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise HTTPException(status_code=400, detail="Return already processed.")

    # Not transactional with the update above
    db["movie"].update_one({"_id": rental["movie"]["_id"]}, {"$inc": {"numberInStock": 1}})

    logger.info("Rental %s returned, cost %s", updated["_id"], updated["rentalCost"])
    return updated
