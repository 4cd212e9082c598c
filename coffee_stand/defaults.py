# coffee_stand/defaults.py
import re
from typing import Optional

from coffee_stand.models import Product

# name, volume (litres), price, image
RAW_PRODUCTS = [
    ("Капучино", 0.2, 150, "https://images.unsplash.com/photo-1517701550927-30cf4ba1dba5"),
    ("Капучино", 0.3, 185, "https://images.pexels.com/photos/2396220/pexels-photo-2396220.jpeg"),
    ("Капучино", 0.4, 195, "https://images.unsplash.com/photo-1587496679742-bad502958fbf"),
    ("Капучино", 0.5, 250, "https://images.pexels.com/photos/302899/pexels-photo-302899.jpeg"),
    ("Латте", 0.2, 140, "https://images.unsplash.com/photo-1572442388796-11668a67e53d"),
    ("Латте", 0.3, 165, "https://images.pexels.com/photos/685527/pexels-photo-685527.jpeg"),
    ("Американо", 0.2, 115, "https://images.unsplash.com/photo-1541167760496-1628856ab772"),
    ("Американо", 0.3, 135, "https://images.pexels.com/photos/4195566/pexels-photo-4195566.jpeg"),
    ("Эспрессо", None, 100, "https://images.unsplash.com/photo-1510591509098-f4fdc6d0ff04"),
    ("Доппио", None, 135, "https://images.pexels.com/photos/3741470/pexels-photo-3741470.jpeg"),
    ("Раф", 0.2, 195, "https://images.unsplash.com/photo-1615657203690-d7d2478b250a"),
    ("Раф", 0.3, 245, "https://images.pexels.com/photos/8515553/pexels-photo-8515553.jpeg"),
    ("Раф", 0.4, 310, "https://images.unsplash.com/photo-1612203985729-70726954388c"),
    ("Раф халва", None, 285, "https://images.pexels.com/photos/808941/pexels-photo-808941.jpeg"),
    ("Горячий шоколад", 0.3, 205, "https://images.unsplash.com/photo-1575380585122-4b1ade5d4f72"),
    ("Горячий шоколад", 0.5, 275, "https://images.pexels.com/photos/6605313/pexels-photo-6605313.jpeg"),
    ("Флэт Уайт", None, 205, "https://images.unsplash.com/photo-1597318181409-cf64d0b5d8a8"),
    ("Моккачино", None, 315, "https://images.pexels.com/photos/4790100/pexels-photo-4790100.jpeg"),
    ("Чай", 0.3, 110, "https://images.unsplash.com/photo-1597318181409-cf64d0b5d8a8"),
    ("Чай", 0.5, 190, "https://images.pexels.com/photos/691114/pexels-photo-691114.jpeg"),
    ("Кофейный глинтвейн", None, 195, "https://images.unsplash.com/photo-1578985545062-69928b1d9587"),
    ("Холодный кофе", 0.3, 195, "https://images.pexels.com/photos/302896/pexels-photo-302896.jpeg"),
    ("Холодный кофе", 0.5, 225, "https://images.unsplash.com/photo-1551030173-122a2d6da306"),
    ("Холодный американо", None, 150, "https://images.pexels.com/photos/8515555/pexels-photo-8515555.jpeg"),
    ("Кофе/тоник", 0.3, 185, "https://images.unsplash.com/photo-1580651210345-c640471c9a7e"),
    ("Кофе/тоник", 0.5, 225, "https://images.pexels.com/photos/8515559/pexels-photo-8515559.jpeg"),
    ("Бамбл", 0.3, 195, "https://images.unsplash.com/photo-1572442388796-11668a67e53d"),
    ("Бамбл", 0.5, 235, "https://images.pexels.com/photos/8515557/pexels-photo-8515557.jpeg"),
    ("Сироп", None, 50, "https://images.pexels.com/photos/4706133/pexels-photo-4706133.jpeg"),
    ("Молоко миндаль", None, 60, "https://images.unsplash.com/photo-1550583724-b2692b85b150"),
    ("Молоко кокос", None, 60, "https://images.unsplash.com/photo-1622921491195-9b833a3e1f6a"),
    ("Молоко банан", None, 60, "https://images.pexels.com/photos/1092730/pexels-photo-1092730.jpeg"),
    ("Жвачка", None, 60, "https://images.unsplash.com/photo-1587135991058-88132bea1d5c"),
    ("Кола", None, 95, "https://images.pexels.com/photos/50593/coca-cola-cold-drink-soft-drink-coke-50593.jpeg"),
    ("Батончик", None, 145, "https://images.unsplash.com/photo-1600956054489-a23507c64a10"),
    ("Мороженое", None, 165, "https://images.unsplash.com/photo-1576506295286-5cda18df43e7"),
]

SIZE_HINTS = (("0,2", "small"), ("0,3", "medium"), ("0,4", "large"), ("0,5", "extra large"))
NAME_HINTS = (
    ("кофе", "coffee"),
    ("чай", "tea"),
    ("шоколад", "chocolate"),
    ("холодный", "iced"),
    ("латте", "latte"),
    ("капучино", "cappuccino"),
    ("американо", "americano"),
    ("эспрессо", "espresso"),
    ("раф", "raf"),
)


def format_volume(volume) -> Optional[str]:
    if volume is None or volume in ("", "-"):
        return None
    return str(volume).replace(".", ",") + " л"


def generate_hint(name: str, volume: Optional[str] = None) -> str:
    name_lower = name.lower()
    hints = [name_lower]
    if volume:
        m = re.search(r"[\d,]+", volume)
        if m:
            hints.append(m.group(0))
        for needle, word in SIZE_HINTS:
            if needle in volume:
                hints.append(word)
                break
    for needle, word in NAME_HINTS:
        if needle in name_lower:
            hints.append(word)
    unique = list(dict.fromkeys(hints))
    return " ".join(unique[:3])


def get_default_products():
    products = []
    for index, (name, raw_volume, price, image_url) in enumerate(RAW_PRODUCTS):
        volume = format_volume(raw_volume)
        suffix = re.sub(r"[^a-z0-9]", "", name.lower())[:5]
        suffix += re.sub(r"[^0-9]", "", volume) if volume else ""
        pid = f"prod_{suffix}{index}"
        if not (image_url and image_url.startswith("http")):
            image_url = f"https://picsum.photos/100/80?random={pid}"
        products.append(Product(
            id=pid,
            name=name,
            volume=volume,
            price=float(price),
            image_url=image_url,
            data_ai_hint=generate_hint(name, volume),
        ))
    return products
