import pytest

from marketplace.models import ArtistProfile, Booking, Notification, NotificationType, Review, UserRole
from marketplace.schemas import ReviewCreate, ReviewUpdate
from marketplace.services import booking_lifecycle, rating_aggregator
from marketplace.utils.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError

from factories import FakeProvider, make_artist, make_booking, make_user, pay_booking, setup_db


def completed_booking(db, customer, artist):
    booking = make_booking(db, customer, artist, accept=True)
    pay_booking(db, booking, customer, FakeProvider())
    return booking_lifecycle.complete_booking(db, booking.id, artist)


def artist_rating(db, artist):
    profile = db.query(ArtistProfile).filter(ArtistProfile.user_id == artist.id).one()
    db.refresh(profile)
    return profile.rating, profile.total_reviews


def test_create_review_updates_rating_and_links_booking():
    db = setup_db()
    customer = make_user(db, "c@example.com")
    artist = make_artist(db)
    booking = completed_booking(db, customer, artist)

    review = rating_aggregator.create_review(db, booking.id, customer, ReviewCreate(rating=4, comment="Great"))

    assert review.artist_id == artist.id
    assert review.is_visible is True
    db.refresh(booking)
    assert booking.review_id == review.id
    assert artist_rating(db, artist) == (4.0, 1)
    notif = db.query(Notification).filter(Notification.type == NotificationType.REVIEW_RECEIVED).one()
    assert notif.recipient_id == artist.id


def test_rating_is_mean_of_visible_reviews():
    db = setup_db()
    artist = make_artist(db)
    admin = make_user(db, "admin@example.com", role=UserRole.ADMIN)
    reviews = []
    for i, stars in enumerate([5, 4, 2]):
        customer = make_user(db, f"c{i}@example.com")
        booking = completed_booking(db, customer, artist)
        reviews.append(
            (customer, rating_aggregator.create_review(db, booking.id, customer, ReviewCreate(rating=stars)))
        )

    rating, count = artist_rating(db, artist)
    assert count == 3
    assert rating == pytest.approx(11 / 3)

    customer, first = reviews[0]
    rating_aggregator.update_review(db, first.id, customer, ReviewUpdate(rating=3))
    assert artist_rating(db, artist) == (pytest.approx(3.0), 3)

    rating_aggregator.set_review_visibility(db, reviews[2][1].id, admin, False)
    assert artist_rating(db, artist) == (pytest.approx(3.5), 2)
    listed = rating_aggregator.list_reviews_for_artist(db, artist.id)
    assert {r.id for r in listed} == {reviews[0][1].id, reviews[1][1].id}


def test_rating_resets_to_zero_when_no_reviews_remain():
    db = setup_db()
    customer = make_user(db, "c@example.com")
    artist = make_artist(db)
    booking = completed_booking(db, customer, artist)
    review = rating_aggregator.create_review(db, booking.id, customer, ReviewCreate(rating=5))

    rating_aggregator.delete_review(db, review.id, customer)

    assert artist_rating(db, artist) == (0.0, 0)
    assert db.query(Review).count() == 0
    assert db.query(Booking).one().review_id is None


def test_second_review_conflicts():
    db = setup_db()
    customer = make_user(db, "c@example.com")
    artist = make_artist(db)
    booking = completed_booking(db, customer, artist)
    rating_aggregator.create_review(db, booking.id, customer, ReviewCreate(rating=5))

    with pytest.raises(ConflictError):
        rating_aggregator.create_review(db, booking.id, customer, ReviewCreate(rating=1))
    assert db.query(Review).count() == 1


def test_review_requires_completed_owned_booking():
    db = setup_db()
    customer = make_user(db, "c@example.com")
    stranger = make_user(db, "s@example.com")
    artist = make_artist(db)
    booking = make_booking(db, customer, artist, accept=True)

    with pytest.raises(BadRequestError):
        rating_aggregator.create_review(db, booking.id, customer, ReviewCreate(rating=5))
    with pytest.raises(ForbiddenError):
        rating_aggregator.create_review(db, booking.id, stranger, ReviewCreate(rating=5))
    with pytest.raises(NotFoundError):
        rating_aggregator.create_review(db, 9999, customer, ReviewCreate(rating=5))


def test_only_owner_edits_and_owner_or_admin_deletes():
    db = setup_db()
    customer = make_user(db, "c@example.com")
    other = make_user(db, "o@example.com")
    admin = make_user(db, "admin@example.com", role=UserRole.ADMIN)
    artist = make_artist(db)
    booking = completed_booking(db, customer, artist)
    review = rating_aggregator.create_review(db, booking.id, customer, ReviewCreate(rating=5))

    with pytest.raises(ForbiddenError):
        rating_aggregator.update_review(db, review.id, other, ReviewUpdate(comment="x"))
    with pytest.raises(ForbiddenError):
        rating_aggregator.delete_review(db, review.id, other)
    with pytest.raises(ForbiddenError):
        rating_aggregator.set_review_visibility(db, review.id, customer, False)

    rating_aggregator.delete_review(db, review.id, admin)
    assert db.query(Review).count() == 0


def test_hidden_review_reads_as_missing():
    db = setup_db()
    customer = make_user(db, "c@example.com")
    admin = make_user(db, "admin@example.com", role=UserRole.ADMIN)
    artist = make_artist(db)
    booking = completed_booking(db, customer, artist)
    review = rating_aggregator.create_review(db, booking.id, customer, ReviewCreate(rating=3, comment="Fine"))

    assert rating_aggregator.get_review(db, review.id).comment == "Fine"

    rating_aggregator.set_review_visibility(db, review.id, admin, False)
    with pytest.raises(NotFoundError):
        rating_aggregator.get_review(db, review.id)
    with pytest.raises(NotFoundError):
        rating_aggregator.get_review(db, review.id + 100)
