"""Default value generator for generator-sourced step data."""

import re
from collections.abc import Callable

from faker import Faker

ValueFactory = Callable[[Faker], str]

PROVIDERS: dict[str, ValueFactory] = {
    "name": lambda fake: f"{fake.first_name()} {fake.last_name()}",
    "first_name": lambda fake: fake.first_name(),
    "last_name": lambda fake: fake.last_name(),
    "email": lambda fake: fake.email(),
    "phone": lambda fake: fake.numerify("###-###-####"),
    "address": lambda fake: fake.street_address(),
    "city": lambda fake: fake.city(),
    "zip_code": lambda fake: fake.postcode(),
    "company": lambda fake: fake.company(),
    "username": lambda fake: fake.user_name(),
    "url": lambda fake: fake.url(),
    "number": lambda fake: str(fake.random_int(min=1, max=1000)),
    "password": lambda fake: fake.password(length=12),
    "uuid": lambda fake: fake.uuid4(),
    "sentence": lambda fake: fake.sentence(),
    "word": lambda fake: fake.word(),
}

ALIASES = {
    "full_name": "name",
    "phone_number": "phone",
    "phone.number": "phone",
    "street_address": "address",
    "postcode": "zip_code",
    "company_name": "company",
    "company.name": "company",
    "user_name": "username",
    "uuid4": "uuid",
}


def _snake(segment: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", segment).lower()


def _method_key(method: str) -> str:
    # "person.firstName" -> "first_name", "phone.number" -> "phone"
    dotted = ".".join(_snake(part) for part in method.strip().split("."))
    if dotted in ALIASES:
        return ALIASES[dotted]
    last = dotted.rsplit(".", 1)[-1]
    return ALIASES.get(last, last)


class FakerValueGenerator:
    """Test values from Faker.

    Methods are Faker-style names such as ``email``, ``phone`` or
    ``person.firstName``; dotted names use their last segment unless the
    full path is known (``phone.number``). Unknown methods yield a word.

    Pass a seed for reproducible values.
    """

    def __init__(self, seed: int | None = None, locale: str | None = None) -> None:
        self._faker = Faker(locale)
        if seed is not None:
            self._faker.seed_instance(seed)

    def generate(self, method: str) -> str:
        factory = PROVIDERS.get(_method_key(method), PROVIDERS["word"])
        return factory(self._faker)
