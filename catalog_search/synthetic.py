"""벌크 생성용 합성 상품 초안 생성기

어휘 조합으로 이름을 만들고, 가격/재고/무게는 균등 분포에서 뽑음.
SKU 형식: "ABC-01234" (대문자 3 + 숫자 5), key 는 SKU 소문자.
"""

import random
import string

from .errors import ValidationError
from .models import ProductDraft, QuantityValue, Unit

ADJECTIVES = [
    "Classic", "Compact", "Deluxe", "Eco", "Heavy", "Industrial", "Lite",
    "Modular", "Portable", "Premium", "Pro", "Rugged", "Smart", "Ultra",
]

NOUNS = [
    "Bracket", "Cable", "Clamp", "Drill", "Fan", "Gear", "Hinge", "Lamp",
    "Pump", "Sensor", "Switch", "Valve", "Widget", "Wrench",
]

SUFFIXES = ["Inc", "LLC", "Ltd", "Group", "Works", "Co"]

SENTENCES = [
    "Built for daily use in workshops and warehouses.",
    "Corrosion resistant finish with a two year warranty.",
    "Ships assembled and ready to install.",
    "Compatible with most standard fittings.",
    "Tested to exceed industry load ratings.",
    "Designed for quick maintenance without tools.",
]


def _sku(rng: random.Random) -> str:
    letters = "".join(rng.choice(string.ascii_uppercase) for _ in range(3))
    digits = "".join(rng.choice(string.digits) for _ in range(5))
    return f"{letters}-{digits}"


def generate_drafts(
    count: int,
    brand_ids: list[int],
    category_ids: list[int],
    *,
    unit: Unit | None = None,
    rng: random.Random | None = None,
    parent_path: str = "/Products",
) -> list[ProductDraft]:
    """
    count 개의 ProductDraft 생성. SKU 는 호출 내에서 중복되지 않음.

    Raises:
        ValidationError: count < 1 이거나 브랜드/카테고리가 하나도 없을 때
    """
    if count < 1:
        raise ValidationError.single("count", "Provide a positive integer count")
    if not brand_ids or not category_ids:
        raise ValidationError.single("count", "Seed some Brands and Categories first.")

    rng = rng or random.Random()
    seen: set[str] = set()
    drafts: list[ProductDraft] = []

    while len(drafts) < count:
        sku = _sku(rng)
        if sku in seen:
            continue
        seen.add(sku)

        name = f"{rng.choice(ADJECTIVES)} {rng.choice(NOUNS)} {rng.choice(SUFFIXES)}"
        description = " ".join(rng.sample(SENTENCES, k=3))

        drafts.append(
            ProductDraft(
                key=sku.lower(),
                name=name,
                sku=sku,
                description=description,
                price=QuantityValue(round(rng.uniform(1, 9999), 2), unit),
                stock_quantity=float(rng.randint(0, 5000)),
                weight=round(rng.uniform(0.1, 250), 2),
                brand_id=rng.choice(brand_ids),
                category_id=rng.choice(category_ids),
                parent_path=parent_path,
            )
        )

    return drafts
