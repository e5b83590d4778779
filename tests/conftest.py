"""
Shared fixtures: images built with Pillow, PDFs built with PyMuPDF, all in memory.
"""
import io

import fitz  # PyMuPDF
import pytest
from fastapi.testclient import TestClient
from PIL import Image


def image_bytes(fmt, mode="RGB", size=(64, 48), color=(200, 30, 30), **params):
    img = Image.new(mode, size, color)
    buf = io.BytesIO()
    img.save(buf, format=fmt, **params)
    return buf.getvalue()


def gradient_image(size=(128, 128)):
    w, h = size
    img = Image.new("RGB", size)
    img.putdata([((x * 255) // w, (y * 255) // h, ((x + y) * 127) // (w + h)) for y in range(h) for x in range(w)])
    return img


def noise_image(size=(128, 128)):
    return Image.merge("RGB", [Image.effect_noise(size, 90) for _ in range(3)])


def save(img, fmt, **params):
    buf = io.BytesIO()
    img.save(buf, format=fmt, **params)
    return buf.getvalue()


def text_pdf(pages=3, size=(200, 200)):
    doc = fitz.open()
    for n in range(pages):
        page = doc.new_page(width=size[0], height=size[1])
        page.insert_text((20, 40), f"Page {n + 1}", fontsize=14)
    data = doc.tobytes()
    doc.close()
    return data


def image_pdf(pages=2, size=(200, 200)):
    """Pages holding only a large, incompressible photo-like image."""
    doc = fitz.open()
    for _ in range(pages):
        page = doc.new_page(width=size[0], height=size[1])
        png = save(noise_image((900, 900)), "PNG")
        page.insert_image(page.rect, stream=png)
    data = doc.tobytes()
    doc.close()
    return data


def mixed_pdf():
    doc = fitz.open()
    page = doc.new_page(width=200, height=200)
    page.insert_text((20, 40), "Contract terms", fontsize=14)
    page = doc.new_page(width=200, height=200)
    page.insert_image(page.rect, stream=save(noise_image((900, 900)), "PNG"))
    data = doc.tobytes()
    doc.close()
    return data


def encrypted_pdf():
    doc = fitz.open()
    page = doc.new_page(width=200, height=200)
    page.insert_text((20, 40), "secret", fontsize=14)
    data = doc.tobytes(encryption=fitz.PDF_ENCRYPT_AES_256, owner_pw="owner", user_pw="user")
    doc.close()
    return data


@pytest.fixture
def png_bytes():
    return save(gradient_image(), "PNG")


@pytest.fixture
def client():
    from api import app

    with TestClient(app) as c:
        yield c
