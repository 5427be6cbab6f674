"""
Ns3Backend: ns-3 LR-WPAN collaborator for MultiPAN

Maps the EventScheduler and RadioBackend interfaces onto ns-3 through the
Python bindings (`from ns import ns`, cppyy):
- Ns3Scheduler: ns.Simulator with Python events wrapped by pythonMakeEvent
- LrWpanBackend: lrwpan::LrWpanNetDevice nodes attached to a
  SingleModelSpectrumChannel with log-distance loss and constant-speed delay

MAC confirms and indications are routed back into Python through C++
trampolines bound to a per-device integer key (MakeBoundCallback).

setup_cppyy_callbacks() must run once before either class is used.

Copyright (c) 2025 MultiPAN Research Team
Licensed under the MIT License
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, List

import cppyy
from ns import ns

from Config import Config
from EventScheduler import EventScheduler
from MacPrimitives import (DataConfirm, DataIndication, DataRequest, MacStatus,
                           StartConfirm, StartRequest)
from RadioBackend import DeviceHandle, RadioBackend, format_short_address
from Topology import ChannelModelConfig, Coordinates

# lrwpan::MacStatus codes
_STATUS_CODES = {
    0x00: MacStatus.SUCCESS,
    0xe1: MacStatus.CHANNEL_ACCESS_FAILURE,
    0xe8: MacStatus.INVALID_PARAMETER,
    0xe9: MacStatus.NO_ACK,
    0xf1: MacStatus.TRANSACTION_OVERFLOW,
}


def setup_cppyy_callbacks(include_dir=None):
    """
    Setup C++ callback trampolines for ns-3 Python bindings.

    Defines:
    - pythonMakeEvent: wraps a Python callable into an ns-3 EventImpl
    - HookLrWpanCallbacks: binds MCPS-DATA.confirm/indication and
      MLME-START.confirm of one MAC to Python dispatchers, tagged with a key
    - IssueStartRequest / IssueDataRequest / TuneLrWpanPhy: build the MAC and
      PHY parameter structs on the C++ side

    Uses shared_ptr for automatic memory management to prevent leaks.

    Args:
        include_dir: ns-3 header directory for the JIT (default:
            Config.NS3_INCLUDE_DIR, else the headers shipped with the bindings)
    """
    include_dir = include_dir or Config.NS3_INCLUDE_DIR
    if include_dir:
        cppyy.add_include_path(os.path.abspath(include_dir))

    if hasattr(ns.cppyy.gbl, 'HookLrWpanCallbacks'):
        return

    ns.cppyy.cppdef(r"""
    #include "ns3/event-id.h"
    #include "ns3/make-event.h"
    #include "ns3/ptr.h"
    #include "ns3/packet.h"
    #include "ns3/lr-wpan-module.h"
    #include <vector>
    #include <functional>
    #include <memory>
    using namespace ns3;
    using namespace ns3::lrwpan;

    static std::vector<std::shared_ptr<std::function<void()>>> _py_store;

    EventImpl* pythonMakeEvent(std::function<void()> f) {
        auto func_ptr = std::make_shared<std::function<void()>>(std::move(f));
        _py_store.push_back(func_ptr);
        return MakeEvent(*func_ptr);
    }

    static std::function<void(uint32_t, uint32_t, uint32_t)> _py_data_confirm;
    static std::function<void(uint32_t, uint32_t, uint32_t, uint32_t)> _py_data_indication;
    static std::function<void(uint32_t, uint32_t)> _py_start_confirm;

    void PythonDataConfirmTrampoline(uint32_t key, McpsDataConfirmParams params) {
        if (_py_data_confirm)
            _py_data_confirm(key, params.m_msduHandle, static_cast<uint32_t>(params.m_status));
    }

    void PythonDataIndicationTrampoline(uint32_t key, McpsDataIndicationParams params, Ptr<Packet> p) {
        if (_py_data_indication) {
            uint8_t buf[2];
            params.m_srcAddr.CopyTo(buf);
            _py_data_indication(key, (buf[0] << 8) | buf[1], params.m_srcPanId, p->GetSize());
        }
    }

    void PythonStartConfirmTrampoline(uint32_t key, MlmeStartConfirmParams params) {
        if (_py_start_confirm)
            _py_start_confirm(key, static_cast<uint32_t>(params.m_status));
    }

    void HookLrWpanCallbacks(Ptr<LrWpanMac> mac, uint32_t key) {
        mac->SetMcpsDataConfirmCallback(MakeBoundCallback(&PythonDataConfirmTrampoline, key));
        mac->SetMcpsDataIndicationCallback(MakeBoundCallback(&PythonDataIndicationTrampoline, key));
        mac->SetMlmeStartConfirmCallback(MakeBoundCallback(&PythonStartConfirmTrampoline, key));
    }

    void IssueStartRequest(Ptr<LrWpanMac> mac, uint32_t panId, uint32_t logCh,
                           uint32_t bcnOrd, uint32_t sfrmOrd, bool panCoor) {
        MlmeStartRequestParams params;
        params.m_PanId = panId;
        params.m_logCh = logCh;
        params.m_bcnOrd = bcnOrd;
        params.m_sfrmOrd = sfrmOrd;
        params.m_panCoor = panCoor;
        mac->MlmeStartRequest(params);
    }

    void IssueDataRequest(Ptr<LrWpanMac> mac, std::string dst, uint32_t dstPanId,
                          uint32_t handle, uint32_t size, bool ack) {
        McpsDataRequestParams params;
        params.m_srcAddrMode = SHORT_ADDR;
        params.m_dstAddrMode = SHORT_ADDR;
        params.m_dstPanId = dstPanId;
        params.m_dstAddr = Mac16Address(dst.c_str());
        params.m_msduHandle = handle;
        params.m_txOptions = ack ? TX_OPTION_ACK : TX_OPTION_NONE;
        mac->McpsDataRequest(params, Create<Packet>(size));
    }

    void TuneLrWpanPhy(Ptr<LrWpanPhy> phy, uint32_t logCh) {
        Ptr<PhyPibAttributes> attr = Create<PhyPibAttributes>();
        attr->phyCurrentChannel = logCh;
        phy->PlmeSetAttributeRequest(PhyPibAttributeIdentifier::phyCurrentChannel, attr);
    }

    void ClearPythonCallbacks() {
        _py_store.clear();
        _py_data_confirm = nullptr;
        _py_data_indication = nullptr;
        _py_start_confirm = nullptr;
    }
    """)


def _to_ns(delay_ms: float):
    return ns.NanoSeconds(int(round(delay_ms * 1e6)))


class Ns3Scheduler(EventScheduler):
    """
    EventScheduler over ns.Simulator.

    Times are converted to integer nanoseconds, the ns-3 default resolution.
    Events with a context run through ScheduleWithContext so ns-3 logging
    attributes them to the right node.
    """

    def __init__(self):
        super().__init__()
        self._event_refs = []

    def now(self) -> float:
        return ns.Simulator.Now().GetNanoSeconds() / 1e6

    def schedule(self, delay_ms, callback, *args, context=None):
        if delay_ms < 0:
            raise ValueError(f"negative delay: {delay_ms}")

        def cb():
            self._invoke(callback, args, context)

        self._event_refs.append(cb)
        if len(self._event_refs) > 1000:
            self._event_refs = self._event_refs[-500:]
        event = ns.cppyy.gbl.pythonMakeEvent(cb)
        if context is None:
            return ns.Simulator.Schedule(_to_ns(delay_ms), event)
        return ns.Simulator.ScheduleWithContext(int(context), _to_ns(delay_ms), event)

    def stop(self, at_ms: float) -> None:
        super().stop(at_ms)
        ns.Simulator.Stop(_to_ns(at_ms - self.now()))

    def run(self) -> None:
        ns.Simulator.Run()

    def destroy(self) -> None:
        super().destroy()
        ns.Simulator.Destroy()
        if hasattr(ns.cppyy.gbl, 'ClearPythonCallbacks'):
            ns.cppyy.gbl.ClearPythonCallbacks()
        self._event_refs.clear()


@dataclass(eq=False)
class LrWpanDevice(DeviceHandle):
    node: Any = field(default=None, repr=False)
    net_device: Any = field(default=None, repr=False)
    mobility: Any = field(default=None, repr=False)


@dataclass(eq=False)
class LrWpanChannel:
    channel_id: int
    model: ChannelModelConfig
    spectrum_channel: Any = field(repr=False)


class LrWpanBackend(RadioBackend):
    """
    RadioBackend over ns-3 LR-WPAN.

    Association is manual (SetPanId / SetAssociatedCoor), no bootstrap
    procedure runs. Data frames carry a zero-filled payload of the requested
    size.
    """

    def __init__(self, scheduler: EventScheduler):
        self.scheduler = scheduler
        self.devices: Dict[int, LrWpanDevice] = {}
        self.channels: List[LrWpanChannel] = []

        ns.cppyy.gbl._py_data_confirm = self._on_data_confirm
        ns.cppyy.gbl._py_data_indication = self._on_data_indication
        ns.cppyy.gbl._py_start_confirm = self._on_start_confirm

    # ------------------------------------------------------------------ setup
    def create_channel(self, model: ChannelModelConfig) -> LrWpanChannel:
        spectrum = ns.CreateObject[ns.SingleModelSpectrumChannel]()

        loss = ns.CreateObject[ns.LogDistancePropagationLossModel]()
        loss.SetAttribute("Exponent", ns.DoubleValue(model.path_loss_exponent))
        loss.SetAttribute("ReferenceLoss", ns.DoubleValue(model.reference_loss_db))
        spectrum.AddPropagationLossModel(loss)

        delay = ns.CreateObject[ns.ConstantSpeedPropagationDelayModel]()
        delay.SetAttribute("Speed", ns.DoubleValue(model.propagation_speed))
        spectrum.SetPropagationDelayModel(delay)

        channel = LrWpanChannel(channel_id=len(self.channels), model=model,
                                spectrum_channel=spectrum)
        self.channels.append(channel)
        return channel

    def channel_id(self, channel: LrWpanChannel) -> int:
        return channel.channel_id

    def create_device(self, address: str) -> LrWpanDevice:
        node = ns.CreateObject[ns.Node]()
        dev = ns.CreateObject[ns.lrwpan.LrWpanNetDevice]()
        dev.SetAddress(ns.Mac16Address(address))
        node.AddDevice(dev)

        mobility = ns.CreateObject[ns.ConstantPositionMobilityModel]()
        node.AggregateObject(mobility)
        dev.GetPhy().SetMobility(mobility)

        key = len(self.devices)
        ns.cppyy.gbl.HookLrWpanCallbacks(dev.GetMac(), key)

        device = LrWpanDevice(key=key, address=address, node=node, net_device=dev,
                              mobility=mobility)
        self.devices[key] = device
        return device

    def bind_channel(self, device: LrWpanDevice, channel: LrWpanChannel) -> None:
        device.net_device.SetChannel(channel.spectrum_channel)
        device.channel = channel

    def set_position(self, device: LrWpanDevice, position: Coordinates) -> None:
        x, y, z = position
        device.mobility.SetPosition(ns.Vector(x, y, z))
        device.position = position

    def associate(self, device: LrWpanDevice, pan_id: int,
                  coordinator: LrWpanDevice) -> None:
        mac = device.net_device.GetMac()
        mac.SetPanId(pan_id)
        mac.SetAssociatedCoor(ns.Mac16Address(coordinator.address))
        device.pan_id = pan_id
        device.coordinator_address = coordinator.address

    def tune(self, device: LrWpanDevice, logical_channel: int) -> None:
        ns.cppyy.gbl.TuneLrWpanPhy(device.net_device.GetPhy(), logical_channel)
        device.logical_channel = logical_channel

    # ------------------------------------------------------------ primitives
    def start_beacon(self, device: LrWpanDevice, request: StartRequest) -> None:
        ns.cppyy.gbl.IssueStartRequest(
            device.net_device.GetMac(), request.pan_id, request.logical_channel,
            request.beacon_order, request.superframe_order, request.is_coordinator,
        )
        device.pan_id = request.pan_id
        device.logical_channel = request.logical_channel

    def send_data(self, device: LrWpanDevice, request: DataRequest) -> None:
        if device.channel is None:
            raise RuntimeError(f"device {device.address} is not bound to a channel")
        ns.cppyy.gbl.IssueDataRequest(
            device.net_device.GetMac(), request.dst_address, request.dst_pan_id,
            request.msdu_handle, request.payload_size, request.ack_requested,
        )

    # ------------------------------------------------------- callback dispatch
    def _on_data_confirm(self, key, msdu_handle, status_code):
        device = self.devices.get(int(key))
        if device is None or device.on_data_confirm is None:
            return
        device.on_data_confirm(DataConfirm(
            device_address=device.address,
            msdu_handle=int(msdu_handle),
            status=_STATUS_CODES.get(int(status_code), MacStatus.INVALID_PARAMETER),
        ))

    def _on_data_indication(self, key, src_address, src_pan_id, size):
        device = self.devices.get(int(key))
        if device is None or device.on_data_indication is None:
            return
        device.on_data_indication(DataIndication(
            src_address=format_short_address(int(src_address)),
            dst_address=device.address,
            src_pan_id=int(src_pan_id),
            payload_size=int(size),
        ))

    def _on_start_confirm(self, key, status_code):
        device = self.devices.get(int(key))
        if device is None or device.on_start_confirm is None:
            return
        device.on_start_confirm(StartConfirm(
            device_address=device.address,
            status=_STATUS_CODES.get(int(status_code), MacStatus.INVALID_PARAMETER),
        ))
