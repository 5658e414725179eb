# cm_core/tests/helpers.py

def scoped(tenant, clinic):
    return {
        "HTTP_X_TENANT_ID": str(tenant.id),
        "HTTP_X_CLINIC_ID": str(clinic.id),
    }


def tenant_only(tenant):
    return {"HTTP_X_TENANT_ID": str(tenant.id)}
