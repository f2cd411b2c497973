"""

Driver Station

Client side of the driver station protocol: a station sends small control packets to a
robot controller over UDP, and the robot answers with telemetry.

- protocol.codec: encodes the 6 byte control packet and decodes telemetry packets.
- liveness: decides whether the robot is present. Searches at 1Hz until the robot answers,
  then sends at 50Hz and declares the link lost after more than 10 unanswered packets.
- telemetry: pushes decoded records to subscribers, or to iterators opened with stream().
- transport: the UDP sockets, and strategies for finding the robot's address from the
  team number (mDNS host name, static address, multicast DNS lookup).
- station: DriverStation ties these together. Build one with create_driver_station():

    station = create_driver_station(team_number=178)
    station.connected += lambda: print("connected!")
    station.start()

- config: loads station settings from configobj files, validated against a schema.

"""
