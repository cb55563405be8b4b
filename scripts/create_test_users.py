"""
Script para crear las tablas y los usuarios de prueba de TiendaPOS
"""
from tiendapos.config.database import Base, SessionLocal, engine
from tiendapos.core.auth.service import AuthService
from tiendapos.shared.database.models import Usuario, RolUsuario


def create_test_users():
    """Crear un usuario de prueba por rol"""

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    try:
        existing_users = db.query(Usuario).count()
        if existing_users > 0:
            print(f"Ya existen {existing_users} usuarios en la base de datos")
            return

        test_users = [
            {
                "email": "admin@tiendapos.com",
                "password": "admin123",
                "nombre": "Ana Administradora",
                "rol": RolUsuario.ADMINISTRADOR.value
            },
            {
                "email": "caja@tiendapos.com",
                "password": "caja123",
                "nombre": "Caja 1",
                "rol": RolUsuario.VENDEDOR.value
            },
            {
                "email": "mayorista@tiendapos.com",
                "password": "mayorista123",
                "nombre": "Distribuidora Norte",
                "rol": RolUsuario.MAYORISTA.value
            },
            {
                "email": "minorista@tiendapos.com",
                "password": "minorista123",
                "nombre": "Kiosco Central",
                "rol": RolUsuario.MINORISTA.value
            }
        ]

        for user_data in test_users:
            db.add(Usuario(
                email=user_data["email"],
                password_hash=AuthService.hash_password(user_data["password"]),
                nombre=user_data["nombre"],
                rol=user_data["rol"],
                is_active=True
            ))
            print(f"Usuario creado: {user_data['email']} ({user_data['rol']})")

        db.commit()
        print(f"\n{len(test_users)} usuarios de prueba creados")

    except Exception as e:
        db.rollback()
        print(f"Error creando usuarios: {e}")
        raise

    finally:
        db.close()


if __name__ == "__main__":
    create_test_users()
