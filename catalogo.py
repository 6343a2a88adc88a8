# catalogo.py
from collections import namedtuple
from types import MappingProxyType

from helpers import normalizar_nombre, aplicar_alias


class Actor(namedtuple('Actor', ['id', 'email', 'nombre', 'departamento', 'roles', 'es_super'])):
    """
    Principal autenticado, ya canonicalizado contra el catálogo.
    Se arma una sola vez por petición (ver decorators.actor_actual).
    """
    __slots__ = ()

    def tiene_rol(self, *roles):
        return any(rol in self.roles for rol in roles)

    @property
    def rol_principal(self):
        return self.roles[0] if self.roles else None

    @property
    def etiqueta(self):
        return self.email or self.nombre or str(self.id)


class CatalogoOrganizacion:
    """
    Departamentos, roles y mapa subdirección -> departamentos.

    Se construye una vez al crear la app y es de sólo lectura: tuplas,
    frozensets y MappingProxyType. Todas las comparaciones se hacen sobre la
    forma normalizada (sin acentos, mayúsculas, alias aplicados) y lo que se
    guarda es siempre la forma canónica del catálogo.
    """

    def __init__(self, departamentos, roles, super_roles, subdirecciones,
                 depts_sin_subdirector, subdir_map, subdir_fallback_map=None,
                 alias_nombres=None, alias_roles=None,
                 depto_recepcion='AREA ADMINISTRATIVA', depto_direccion='DIRECCION'):
        self._alias_nombres = MappingProxyType(dict(alias_nombres or {}))
        self._alias_roles = MappingProxyType(dict(alias_roles or {}))

        self.departamentos = tuple(departamentos)
        self.roles = tuple(roles)
        self.subdirecciones = tuple(subdirecciones)

        self._deptos_por_clave = MappingProxyType(
            {self.clave(d): d for d in self.departamentos + self.subdirecciones}
        )
        self._roles_por_clave = MappingProxyType({self.clave_rol(r): r for r in self.roles})
        self._subdirs_por_clave = MappingProxyType({self.clave(s): s for s in self.subdirecciones})

        self.super_roles = frozenset(self.canonico_rol(r) for r in super_roles)
        self.depts_sin_subdirector = frozenset(self.clave(d) for d in depts_sin_subdirector)

        alcance = {}
        for mapa in (subdir_map or {}, subdir_fallback_map or {}):
            for subdir, deptos in mapa.items():
                actuales = alcance.setdefault(self.clave(subdir), set())
                actuales.update(self.clave(d) for d in deptos)
        self._alcance_subdir = MappingProxyType(
            {k: frozenset(v) for k, v in alcance.items()}
        )

        self.depto_recepcion = self.canonico_departamento(depto_recepcion)
        self.depto_direccion = self.canonico_departamento(depto_direccion)

    @classmethod
    def desde_config(cls, config):
        return cls(**config)

    # --- Normalización ---

    def clave(self, nombre):
        return aplicar_alias(nombre, self._alias_nombres)

    def clave_rol(self, rol):
        return aplicar_alias(rol, self._alias_roles)

    def canonico_departamento(self, nombre):
        """Forma guardada del departamento/subdirección, o None si no existe."""
        if not nombre:
            return None
        return self._deptos_por_clave.get(self.clave(nombre))

    def canonico_subdireccion(self, nombre):
        if not nombre:
            return None
        return self._subdirs_por_clave.get(self.clave(nombre))

    def canonico_rol(self, rol):
        if not rol:
            return None
        return self._roles_por_clave.get(self.clave_rol(rol))

    def canonico_roles(self, roles):
        vistos = []
        for rol in roles or []:
            canonico = self.canonico_rol(rol)
            if canonico and canonico not in vistos:
                vistos.append(canonico)
        return tuple(vistos)

    def mismo_nombre(self, a, b):
        return bool(a) and bool(b) and self.clave(a) == self.clave(b)

    # --- Enrutamiento ---

    def departamentos_de_subdireccion(self, subdireccion):
        claves = self._alcance_subdir.get(self.clave(subdireccion), frozenset())
        return tuple(sorted(self._deptos_por_clave.get(k, k) for k in claves))

    def departamento_enrutable(self, departamento):
        """
        Un departamento puede recibir directo de Dirección si no tiene
        subdirector o si aparece bajo alguna subdirección del mapa.
        """
        k = self.clave(departamento)
        if k in self.depts_sin_subdirector:
            return True
        return any(k in deptos for deptos in self._alcance_subdir.values())

    def es_super(self, roles):
        return any(r in self.super_roles for r in roles)

    # --- Frontera de identidad ---

    def actor_desde_usuario(self, usuario):
        roles = self.canonico_roles(usuario.nombres_roles)
        departamento = self.canonico_departamento(usuario.departamento) or usuario.departamento
        return Actor(
            id=usuario.id,
            email=usuario.email,
            nombre=usuario.nombre,
            departamento=departamento,
            roles=roles,
            es_super=self.es_super(roles),
        )
