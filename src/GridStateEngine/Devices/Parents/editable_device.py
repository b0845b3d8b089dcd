# This Source Code Form is subject to the terms of the Mozilla Public
# License, v. 2.0. If a copy of the MPL was not distributed with this
# file, You can obtain one at https://mozilla.org/MPL/2.0/.
# SPDX-License-Identifier: MPL-2.0
import uuid
from typing import List, Dict, Any, Union, Type
from GridStateEngine.enumerations import (DeviceType, BusMode, SolverType, FactorizationType,
                                          StateEstimationMethod, MeasurementSide, CostModel, MIPSolvers)

# types that can be assigned to a registered property
GSPROP_TYPES = Union[
    Type[int],
    Type[bool],
    Type[float],
    Type[str],
    DeviceType,
    Type[BusMode],
    Type[SolverType],
    Type[FactorizationType],
    Type[StateEstimationMethod],
    Type[MeasurementSide],
    Type[CostModel],
    Type[MIPSolvers],
]


def parse_idtag(val: Union[str, None]) -> str:
    """
    idtag setter
    :param val: any string or None
    """
    if val is None:
        return uuid.uuid4().hex  # generate a proper UUIDv4 string
    elif isinstance(val, str):
        if len(val) == 0:
            return uuid.uuid4().hex
        else:
            return val
    else:
        return str(val)


class GSProp:
    """
    Registered property
    """

    def __init__(self,
                 prop_name: str,
                 units: str,
                 tpe: GSPROP_TYPES,
                 definition: str,
                 editable: bool = True):
        """
        Registered property
        :param prop_name: name of the attribute
        :param units: units of the property
        :param tpe: data type
        :param definition: Definition of the property
        :param editable: Is this editable?
        """
        self.name = prop_name

        self.units = units

        self.tpe = tpe

        self.definition = definition

        self.editable = editable

    def __str__(self):
        return self.name

    def __repr__(self):
        return "prop:" + self.name


class EditableDevice:
    """
    This is the main device class from which all inherit
    """

    def __init__(self,
                 name: str,
                 idtag: Union[str, None],
                 code: str,
                 device_type: DeviceType):
        """
        Class to generalize any editable device
        :param name: Asset's name, used as label in the power system
        :param idtag: unique ID, if not provided it is generated
        :param code: alternative code to identify this object in other databases
        :param device_type: DeviceType instance
        """

        self._idtag = parse_idtag(val=idtag)

        self.name: str = name

        self.code: str = code

        self.device_type: DeviceType = device_type

        self.registered_properties: Dict[str, GSProp] = dict()

        self.register(key='idtag', units='', tpe=str, definition='Unique ID', editable=False)
        self.register(key='name', units='', tpe=str, definition='Name of the device, used as label.')
        self.register(key='code', units='', tpe=str, definition='Secondary ID')

    def __str__(self) -> str:
        return str(self.name)

    def __repr__(self) -> str:
        return self.idtag + '::' + str(self.name)

    def __hash__(self) -> int:
        return hash(self.idtag)

    def __eq__(self, other) -> bool:
        if hasattr(other, 'idtag'):
            return self.idtag == other.idtag
        else:
            return False

    @property
    def idtag(self) -> str:
        """
        idtag getter
        :return: string, hopefully an UUIDv4
        """
        return self._idtag

    @idtag.setter
    def idtag(self, val: Union[str, None]):
        self._idtag = parse_idtag(val)

    @property
    def type_name(self) -> str:
        """
        Name of the device type
        :return: name of the type (str)
        """
        return self.device_type.value

    def register(self,
                 key: str,
                 tpe: GSPROP_TYPES,
                 units: str = '',
                 definition: str = '',
                 editable: bool = True):
        """
        Register property
        The property must exist
        :param key: key (this is the displayed name)
        :param tpe: type of the attribute
        :param units: string with the declared units
        :param definition: Definition of the property
        :param editable: is this editable?
        """
        assert (hasattr(self, key))  # the property must exist, this avoids bugs when registering

        if key in self.registered_properties.keys():
            raise Exception(f"Property {key} already registered!")

        self.registered_properties[key] = GSProp(prop_name=key,
                                                 units=units,
                                                 tpe=tpe,
                                                 definition=definition,
                                                 editable=editable)

    def get_headers(self) -> List[str]:
        """
        Return a list of headers
        """
        return list(self.registered_properties.keys())

    def to_dict(self) -> Dict[str, Any]:
        """
        Get the registered properties as a dictionary
        Objects are represented by their name
        :return: {property name: value}
        """
        data = dict()
        for key, prop in self.registered_properties.items():
            obj = getattr(self, key)
            if isinstance(obj, EditableDevice):
                data[key] = obj.name
            elif hasattr(obj, 'value') and not isinstance(obj, (int, float, bool, str)):
                data[key] = obj.value  # enumerations
            else:
                data[key] = obj
        return data

    def is_editable(self, key: str) -> bool:
        """
        Can this registered property be modified through the update functions?
        :param key: property name
        :return: bool
        """
        prop = self.registered_properties.get(key, None)
        return prop is not None and prop.editable
