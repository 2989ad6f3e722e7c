import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from passlib.context import CryptContext
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import Settings
from database import Store, as_object_id, serialize_document
from errors import AuthError, ConflictError, NotFoundError, PosError, ValidationError, store_operation
from schemas import Credentials, Product, Transaction, TransactionCreate, TransactionItem, User
from uploads import UploadStore, has_file

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)

router = APIRouter()

PRODUCT_FIELDS = ("name", "category", "size", "barcode", "price")


# Auth helpers

def verify_password(plain_password, hashed_password):
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # stored value is not a hash this context recognizes
        return False


def get_password_hash(password):
    return pwd_context.hash(password)


# Dependencies

def get_store(request: Request) -> Store:
    return request.app.state.store


def get_uploads(request: Request) -> UploadStore:
    return request.app.state.uploads


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def missing(settings: Settings, message: str, collection: str, doc_id: str):
    if settings.strict_not_found:
        raise NotFoundError(message)
    logger.warning("No %s matched id %s; treating as success", collection, doc_id)


@router.get("/", response_class=PlainTextResponse)
def read_root():
    return "Welcome to the Storefront POS backend!"


@router.get("/test")
def test_database(store: Store = Depends(get_store)):
    info = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        if store is not None:
            info["database_name"] = store.name
            info["collections"] = store.collection_names()
            info["database"] = "✅ Connected & Working"
            info["connection_status"] = "Connected"
    except PyMongoError as e:
        info["database"] = f"⚠️ Error: {str(e)[:80]}"
    return info


# Accepts either JSON or form bodies
async def parse_credentials(request: Request) -> Credentials:
    content_type = request.headers.get("content-type", "")
    if "application/x-www-form-urlencoded" in content_type or "multipart/form-data" in content_type:
        data = await request.form()
    else:
        try:
            data = await request.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise ValidationError("Please provide email and password")
    # file parts and non-string JSON values count as absent
    creds = Credentials(
        email=data.get("email") if isinstance(data.get("email"), str) else None,
        password=data.get("password") if isinstance(data.get("password"), str) else None,
    )
    if not creds.email or not creds.password:
        raise ValidationError("Please provide email and password")
    return creds


def register_user(store: Store, creds: Credentials):
    with store_operation("Registration failed"):
        if store.get_documents("user", {"email": creds.email}, limit=1):
            raise ConflictError("User already exists")
        user = User(email=creds.email, password=get_password_hash(creds.password))
        try:
            store.create_document("user", user)
        except DuplicateKeyError:
            raise ConflictError("User already exists")
    logger.info("Registered user %s", creds.email)


def authenticate(store: Store, creds: Credentials):
    with store_operation("Login failed"):
        user_docs = store.get_documents("user", {"email": creds.email}, limit=1)
    if not user_docs or not verify_password(creds.password, user_docs[0].get("password")):
        raise AuthError("Invalid email or password")


# Auth routes; store and bcrypt work runs in the threadpool
@router.post("/api/register")
async def register(request: Request, store: Store = Depends(get_store)):
    creds = await parse_credentials(request)
    await run_in_threadpool(register_user, store, creds)
    return {"message": "Registration successful"}


@router.post("/api/login")
async def login(request: Request, store: Store = Depends(get_store)):
    creds = await parse_credentials(request)
    await run_in_threadpool(authenticate, store, creds)
    return {"message": "Login successful", "user": {"email": creds.email}}


# Products
@router.get("/api/products")
def list_products(store: Store = Depends(get_store)):
    with store_operation("Failed to fetch products"):
        docs = store.get_documents("product")
    return [serialize_document(d) for d in docs]


async def parse_product_form(request: Request):
    """Split a product form into the text fields actually sent and the optional photo part."""
    form = await request.form()
    # present-but-empty values are kept so they can clear a field
    fields = {k: form[k] for k in PRODUCT_FIELDS if k in form and isinstance(form[k], str)}
    photo = form.get("photo")
    return fields, photo if has_file(photo) else None


def save_product(store: Store, uploads: UploadStore, fields: dict, photo) -> str:
    with store_operation("Failed to add product"):
        photo_url = uploads.save(photo) if photo is not None else ""
        product = Product(photo=photo_url, **fields)
        try:
            product_id = store.create_document("product", product)
        except PyMongoError:
            uploads.discard(photo_url)
            raise
    logger.info("Created product %s", product_id)
    return product_id


@router.post("/api/products")
async def create_product(
    request: Request,
    store: Store = Depends(get_store),
    uploads: UploadStore = Depends(get_uploads),
):
    fields, photo = await parse_product_form(request)
    await run_in_threadpool(save_product, store, uploads, fields, photo)
    return {"message": "Product added!"}


def replace_product(store: Store, uploads: UploadStore, settings: Settings,
                    product_id: str, fields: dict, photo):
    update_dict = dict(fields)

    with store_operation("Failed to update product"):
        new_photo = uploads.save(photo) if photo is not None else None
        if new_photo:
            update_dict["photo"] = new_photo
        try:
            previous = store.update_document("product", product_id, update_dict)
        except PyMongoError:
            uploads.discard(new_photo)
            raise

    if previous is None:
        uploads.discard(new_photo)
        missing(settings, "Product not found", "product", product_id)
        return

    # replace-and-reclaim: the old photo goes once the new one is referenced
    if new_photo and previous.get("photo") != new_photo:
        uploads.discard(previous.get("photo"))
    logger.info("Updated product %s", product_id)


@router.put("/api/products/{product_id}")
async def update_product(
    product_id: str,
    request: Request,
    store: Store = Depends(get_store),
    uploads: UploadStore = Depends(get_uploads),
    settings: Settings = Depends(get_settings),
):
    fields, photo = await parse_product_form(request)
    await run_in_threadpool(replace_product, store, uploads, settings, product_id, fields, photo)
    return {"message": "Product updated"}


@router.delete("/api/products/{product_id}")
def delete_product(
    product_id: str,
    store: Store = Depends(get_store),
    uploads: UploadStore = Depends(get_uploads),
    settings: Settings = Depends(get_settings),
):
    with store_operation("Failed to delete product"):
        deleted = store.delete_document("product", product_id)

    if deleted is None:
        missing(settings, "Product not found", "product", product_id)
    else:
        uploads.discard(deleted.get("photo"))
        logger.info("Deleted product %s", product_id)
    return {"message": "Product deleted"}


# Transactions
@router.post("/api/transactions")
def create_transaction(payload: TransactionCreate, store: Store = Depends(get_store)):
    if not payload.items:
        raise ValidationError("No items in transaction.")

    transaction = Transaction(
        items=[TransactionItem(product=item.product.id, quantity=item.quantity) for item in payload.items]
    )
    doc = transaction.model_dump()
    for item in doc["items"]:
        # weak reference: stored as ObjectId when it looks like one, never checked
        item["product"] = as_object_id(item["product"]) or item["product"]

    with store_operation("Failed to save transaction"):
        transaction_id = store.create_document("transaction", doc)

    logger.info("Saved transaction %s with %d item(s)", transaction_id, len(doc["items"]))
    return {"message": "Transaction saved!"}


@router.get("/api/transactions")
def list_transactions(store: Store = Depends(get_store)):
    with store_operation("Failed to fetch transactions"):
        docs = store.get_documents("transaction", sort=[("created_at", -1)])
        refs = [item.get("product") for d in docs for item in d.get("items", [])]
        products = store.get_documents_by_ids("product", refs)

    # resolve against current product state; deleted products come back as None
    for d in docs:
        for item in d.get("items", []):
            item["product"] = products.get(str(item.get("product")))
    return [serialize_document(d) for d in docs]


@router.delete("/api/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: str,
    store: Store = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    with store_operation("Failed to delete transaction"):
        deleted = store.delete_document("transaction", transaction_id)

    if deleted is None:
        missing(settings, "Transaction not found", "transaction", transaction_id)
    else:
        logger.info("Deleted transaction %s", transaction_id)
    return {"message": "Transaction deleted"}


# Error handlers

async def pos_error_handler(request: Request, exc: PosError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError):
    error = ValidationError("Invalid request body")
    content = error.to_dict()
    content["errors"] = jsonable_encoder(exc.errors())
    return JSONResponse(status_code=error.status_code, content=content)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error", "error": str(exc)})


def create_app(settings: Optional[Settings] = None, store: Optional[Store] = None) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if app.state.store is None:
            owned = Store.connect(settings.database_url, settings.database_name)
            app.state.store = owned
            try:
                owned.ensure_indexes()
            except PyMongoError:
                logger.exception("MongoDB connection error")
        yield
        if owned is not None:
            owned.close()
            app.state.store = None

    app = FastAPI(title="Storefront POS API", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.uploads = UploadStore(settings.upload_dir, settings.upload_url_prefix)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PosError, pos_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(router)
    app.mount(settings.upload_url_prefix, StaticFiles(directory=settings.upload_dir), name="uploads")
    return app


if __name__ == "__main__":
    import uvicorn
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)
