"""
Seed Data Script - Creates the sale and payment flow templates and a few profiles
Run: python -m scripts.seed_data
"""
from salesflow.domain.enums import FlowKind
from salesflow.repositories.mongo_client import (
    FLOW_TEMPLATE_COLLECTIONS, PROFILES, STAGE_COLLECTIONS, TASK_TEMPLATE_COLLECTIONS,
    create_indexes, get_collection
)
from salesflow.config.settings import settings
from salesflow.utils.idgen import generate_id


SALE_TEMPLATE = {
    "name": "Flujo de Venta",
    "stages": [
        ("Reserva", ["Recepción de reserva", "Validación de documentos", "Pago de reserva"]),
        ("Promesa", ["Redacción de promesa", "Firma cliente", "Firma inmobiliaria"]),
        ("Escritura", ["Solicitud de escritura", "Firma de escritura", "Inscripción CBR"]),
        ("Entrega", ["Coordinación de entrega", "Acta de entrega"]),
    ],
}

PAYMENT_TEMPLATE = {
    "name": settings.payment_flow_template_name,
    "stages": [
        ("Solicitud", ["Validación de comisión", "Emisión de orden de compra"]),
        ("Facturación", ["Recepción de factura", "Aprobación de factura"]),
        ("Pago", ["Programación de pago", "Pago realizado"]),
    ],
}

PROFILES_SEED = [
    {"first_name": "Ana", "last_name": "Rojas", "email": "ana.rojas@example.com", "user_type": "Administrador"},
    {"first_name": "Diego", "last_name": "Soto", "email": "diego.soto@example.com", "user_type": "Vendedor"},
    {"first_name": "Camila", "last_name": "Pérez", "email": "camila.perez@example.com", "user_type": "Operaciones"},
]


def seed_template(kind: FlowKind, template: dict) -> str:
    """Insert one flow template with its stages and tasks; returns the template id"""
    templates_col = get_collection(FLOW_TEMPLATE_COLLECTIONS[kind])
    existing = templates_col.find_one({"name": template["name"]})
    if existing:
        print(f"Template '{template['name']}' already exists. Skipping.")
        return existing["id"]

    template_id = generate_id("TPL")
    templates_col.insert_one({"_id": template_id, "id": template_id, "name": template["name"]})

    stages_col = get_collection(STAGE_COLLECTIONS[kind])
    tasks_col = get_collection(TASK_TEMPLATE_COLLECTIONS[kind])
    for stage_order, (stage_name, task_names) in enumerate(template["stages"], start=1):
        stage_id = generate_id("STG")
        stages_col.insert_one({
            "_id": stage_id, "id": stage_id, "flow_template_id": template_id,
            "name": stage_name, "order": stage_order,
        })
        for task_order, task_name in enumerate(task_names, start=1):
            task_id = generate_id("TTP")
            tasks_col.insert_one({
                "_id": task_id, "id": task_id, "stage_id": stage_id,
                "name": task_name, "order": task_order,
            })

    print(f"Created {kind.value} template '{template['name']}' ({template_id})")
    return template_id


def seed_profiles() -> None:
    profiles_col = get_collection(PROFILES)
    for profile in PROFILES_SEED:
        if profiles_col.find_one({"email": profile["email"]}):
            continue
        user_id = generate_id("USR")
        profiles_col.insert_one({"_id": user_id, "id": user_id, **profile})
        print(f"Created profile {profile['email']} ({user_id})")


if __name__ == "__main__":
    print("Creating indexes...")
    create_indexes()
    seed_template(FlowKind.SALE, SALE_TEMPLATE)
    seed_template(FlowKind.PAYMENT, PAYMENT_TEMPLATE)
    seed_profiles()
    print("Done!")
