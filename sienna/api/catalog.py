"""Storefront content endpoints: products, testimonials, bot instructions."""

from __future__ import annotations

from fastapi import APIRouter, Query
from pydantic import BaseModel, ConfigDict, Field

from sienna.core.services import Services


class ProductBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_name: str = Field(min_length=1)
    image_url: str | None = None
    description: str | None = None
    price: float | str | None = None
    url: str | None = None
    formula: str | None = None
    made_for: str | None = Field(None, alias="madeFor")
    performance: str | None = None
    how_to_use: str | None = Field(None, alias="howToUse")
    related_products: str | None = Field(None, alias="relatedProducts")
    image_urls: list[str] | None = Field(None, alias="imageUrls")


class ProductUpdateBody(BaseModel):
    product_name: str = Field(min_length=1)
    image_url: str | None = None
    description: str | None = None
    price: float | str | None = None
    url: str | None = None
    formula: str | None = None


class TestimonialBody(BaseModel):
    name: str = Field(min_length=1)
    testimonial: str = Field(min_length=1)


class InstructionBody(BaseModel):
    instruction_id: int
    instruction_text: str
    category: str | None = None


def register_routes(router: APIRouter, svc: Services, **kw):
    products = svc.products
    testimonials = svc.testimonials
    instructions = svc.instructions

    # -- products --------------------------------------------------------------

    @router.get("/products")
    def api_list_products(
        search: str = Query(""),
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=100),
    ):
        return products.list(search=search, page=page, limit=limit)

    @router.post("/products")
    def api_create_product(body: ProductBody):
        product = products.create(body.model_dump())
        return {"message": "Product created successfully", "product": product}

    @router.get("/products/{product_id}")
    def api_get_product(product_id: int):
        return {"product": products.get(product_id)}

    @router.put("/products/{product_id}")
    def api_update_product(product_id: int, body: ProductUpdateBody):
        product = products.update(product_id, body.model_dump())
        return {"message": "Product updated successfully", "product": product}

    @router.delete("/products/{product_id}")
    def api_delete_product(product_id: int):
        product = products.delete(product_id)
        return {"message": "Product deleted successfully", "product": product}

    # -- testimonials ----------------------------------------------------------

    @router.get("/testimonials")
    def api_list_testimonials():
        return {"testimonials": testimonials.list()}

    @router.post("/testimonials")
    def api_create_testimonial(body: TestimonialBody):
        row = testimonials.create(body.name, body.testimonial)
        return {"message": "Testimonial added successfully", "testimonial": row}

    @router.put("/testimonials/{testimonial_id}")
    def api_update_testimonial(testimonial_id: int, body: TestimonialBody):
        row = testimonials.update(testimonial_id, body.name, body.testimonial)
        return {"message": "Testimonial updated successfully", "testimonial": row}

    @router.delete("/testimonials/{testimonial_id}")
    def api_delete_testimonial(testimonial_id: int):
        testimonials.delete(testimonial_id)
        return {"message": "Testimonial deleted successfully"}

    # -- bot instructions ------------------------------------------------------

    @router.get("/bot-instructions")
    def api_get_instructions():
        return {"instruction": instructions.get()}

    @router.put("/bot-instructions")
    def api_update_instructions(body: InstructionBody):
        row = instructions.update(body.instruction_id, body.instruction_text, body.category)
        return {"message": "Bot instructions updated successfully", "instruction": row}
