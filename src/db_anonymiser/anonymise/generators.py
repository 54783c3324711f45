"""Fake value generators addressed by the ``{{faker.<name>}}`` templates.

Every generator returns a fresh string per call.  Seeding the registry
makes a whole dump reproducible.

Usage:
    generator = FakeValueGenerator(seed=42)
    generator.generate("email")   # 'hwilliams@example.org'
    generator.has("shoeSize")     # False
"""

from collections.abc import Callable

from faker import Faker

PASSWORD_LENGTH = 32


class FakeValueGenerator:
    """Name -> generator registry backed by one ``Faker`` instance.

    Args:
        locale: Faker locale, e.g. ``"en_GB"``.  Faker's default if omitted.
        seed: Seed for reproducible output.
    """

    def __init__(self, locale: str | None = None, seed: int | None = None) -> None:
        self._faker = Faker(locale) if locale else Faker()
        if seed is not None:
            self._faker.seed_instance(seed)

        fake = self._faker
        self._generators: dict[str, Callable[[], str]] = {
            "name": fake.name,
            "firstName": fake.first_name,
            "lastName": fake.last_name,
            "email": fake.email,
            "phone": fake.phone_number,
            "address": fake.street_address,
            "city": fake.city,
            "country": fake.country,
            "company": fake.company,
            "uuid": lambda: str(fake.uuid4()),
            "username": fake.user_name,
            "password": lambda: fake.password(
                length=PASSWORD_LENGTH,
                special_chars=True,
                digits=True,
                upper_case=True,
                lower_case=True,
            ),
            "ipv4": fake.ipv4,
            "date": lambda: fake.date(pattern="%Y-%m-%d"),
            "text": lambda: fake.sentence(nb_words=10),
            "number": lambda: fake.numerify("########"),
        }

    def names(self) -> list[str]:
        return sorted(self._generators)

    def has(self, name: str) -> bool:
        return name in self._generators

    def generate(self, name: str) -> str:
        """Produce one value.

        Raises:
            KeyError: If ``name`` is not a registered generator.
        """
        return self._generators[name]()
