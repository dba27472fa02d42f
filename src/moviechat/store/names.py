"""Display-name generator for users created while seeding."""

from __future__ import annotations

import random
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

DEFAULT_NAMES: tuple[str, ...] = (
    "Noa Cohen", "Daniel Levi", "Yael Mizrahi", "Avi Biton", "Maya Peretz",
    "Yonatan Azulay", "Tamar Ben-David", "Itay Shalom", "Shira Hadad", "Elior Malka",
    "Noya Avraham", "Omer Baruch", "Roni Golan", "Idan Dahan", "Galit Sabag",
    "Nadav Moyal", "Hila Amram", "Doron Peleg", "Lior Edri", "Einav Saban",
    "Shaked Nahum", "Alon Gabay", "Inbar Sharabi", "Yossi Turgeman", "Meital Even-Chen",
    "Tal Avital", "Eliran Amar", "Orly Alfasi", "Shani Hazan", "Tzachi Azulay",
    "Rotem Regev", "Mor Cohen", "Yarden Ben-Hamo", "Shlomi Chaim", "Karin Shalev",
    "Omri Zakai", "Michal Atias", "Oren Vaknin", "Hodaya Levi", "Bar Shemesh",
    "Ofir Sasson", "Naama Mor", "Ravit Ezra", "Tom Avital", "Yehuda Sharvit",
    "Sivan Goldstein", "Amit Morad", "Lilach Arviv", "Erez Rahamim", "Yaara Menashe",
    "Ziv Ben-Zion", "Or Gavriel", "Tzlil Hadad", "Kfir Maman", "Lihi Bar-On",
    "Ron Levi", "Adi Halimi", "Dvir Cohen", "Ayelet Sharon", "Boaz Nir",
    "Shiran Tal", "Dror Yosef", "Dana Harari", "Assaf Shitrit", "Yarden Romano",
    "Reut Oren", "Yigal Sabag", "Ilana Ravid", "Shachar Avraham", "Maayan Ezra",
    "Tal Bashari", "Netanel Meiri", "Shay Natan", "Liron Menachem", "Raz Shoham",
    "Adi Azulay", "Zohar Ben-Ami", "Yossi Shalom", "Mor Elbaz", "Noy Vaknin",
    "Tamir Gabbay", "Yael Sror", "Elad Mashiach", "Sapir Medina", "Amit Danino",
    "Eden Shitrit", "Bar Refael", "Eli Barak", "Ilan Azulay", "Noga Tamir",
    "Saar Sela", "Ofek Levi", "Liat Rimon", "Yair David", "Yarden Ashkenazi",
    "Gili Orbach", "Oshri Nahmani", "Tzlil Gabay", "Orel Avitan", "Shlomi Ben-Yosef",
)  # fmt: skip


class NameGenerator:
    """Draws display names from a pool using its own random source.

    Pass a *seed* (or an explicit ``random.Random``) for reproducible
    seeding runs.
    """

    def __init__(
        self,
        names: Sequence[str] = DEFAULT_NAMES,
        *,
        seed: int | None = None,
        rng: random.Random | None = None,
    ) -> None:
        if not names:
            msg = "Name pool must not be empty"
            raise ValueError(msg)
        self._names = tuple(names)
        self._rng = rng if rng is not None else random.Random(seed)

    def __call__(self) -> str:
        return self._rng.choice(self._names)
